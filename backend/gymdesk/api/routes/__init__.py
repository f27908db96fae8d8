"""Route Modules - system endpoints and collaborator mount points.

Invariants:
    - Each collaborator module exposes a module-level APIRouter without a prefix;
      the RouteTable decides where it is mounted
    - default_handler_groups() order is the canonical registration order
"""

from gymdesk.core.route_table import HandlerGroup


def default_handler_groups() -> list[HandlerGroup]:
    from gymdesk.api.routes import attendance, customers, reports, whatsapp

    return [
        HandlerGroup(
            "whatsapp", "/api/whatsapp", whatsapp.router,
            legacy=False, entry_path="/status",
        ),
        HandlerGroup("customers", "/api/customers", customers.router),
        HandlerGroup("attendance", "/api/attendance", attendance.router),
        HandlerGroup("reports", "/api/reports", reports.router),
    ]

"""API Layer - request pipeline, error handlers and route modules.

Invariants:
    - Routes registered explicitly through the RouteTable (no auto-discovery)
    - All endpoints return structured JSON responses
"""

"""Request Pipeline - end-to-end behaviour of the ordered stages.

Tests:
    - Unmatched paths -> 404 with availableRoutes
    - Canonical mounts are never shadowed by the legacy /api aliases
    - Handler errors -> uniform {success, message, timestamp} with their status
    - Readiness gate -> 500 when the database is unavailable, process keeps serving
    - Body ceiling and malformed bodies rejected before business logic
    - CORS allow-list, methods and credentials
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import text

from gymdesk.api.dependencies import get_db
from gymdesk.api.pipeline import PIPELINE_STAGES
from gymdesk.core.route_table import HandlerGroup

# ─── Helpers ─────────────────────────────────────────────────────


class MemberSuspended(Exception):
    status = 403


def _probe_groups():
    whatsapp = APIRouter()

    @whatsapp.get("/status")
    async def whatsapp_status():
        return {"group": "whatsapp"}

    catch_all = APIRouter()

    @catch_all.api_route("/{rest:path}", methods=["GET", "POST"])
    async def anything(rest: str):
        return {"group": "catch-all", "rest": rest}

    return [
        HandlerGroup("whatsapp", "/api/whatsapp", whatsapp, legacy=False),
        HandlerGroup("everything", "/api/everything", catch_all),
    ]


def _failing_groups():
    router = APIRouter()

    @router.get("/forbidden")
    async def forbidden():
        raise HTTPException(status_code=403, detail="Forbidden area")

    @router.get("/suspended")
    async def suspended():
        raise MemberSuspended("Member is suspended")

    @router.get("/crash")
    async def crash():
        raise RuntimeError("collaborator exploded")

    @router.post("/echo")
    async def echo(request: Request):
        return {"body": request.state.body}

    @router.post("/typed")
    async def typed(payload: dict):
        return {"payload": payload}

    return [HandlerGroup("members", "/api/members", router, legacy=False)]


def _assert_envelope(body, message):
    assert set(body) == {"success", "message", "timestamp"}
    assert body["success"] is False
    assert body["message"] == message
    datetime.fromisoformat(body["timestamp"])


# ─── Stage order ─────────────────────────────────────────────────

def test_pipeline_stage_order_is_documented():
    assert [s.name for s in PIPELINE_STAGES] == [
        "cors", "errors", "body", "access_log", "db_gate", "dispatch", "not_found",
    ]


# ─── Not-found fallback ──────────────────────────────────────────

async def test_unknown_api_path_returns_structured_404(build_app, client_for):
    app = build_app(connected=False)
    async with client_for(app) as client:
        res = await client.get("/api/unknown-thing")
    assert res.status_code == 404
    body = res.json()
    assert body["success"] is False
    assert body["message"] == "Route GET /api/unknown-thing not found"
    assert "/health" in body["availableRoutes"]
    assert "/api/whatsapp/status" in body["availableRoutes"]


async def test_unknown_top_level_path_returns_404(build_app, client_for):
    app = build_app()
    async with client_for(app) as client:
        res = await client.post("/nowhere", json={})
    assert res.status_code == 404
    assert res.json()["message"] == "Route POST /nowhere not found"


async def test_wrong_method_is_normalized(build_app, client_for):
    app = build_app()
    async with client_for(app) as client:
        res = await client.delete("/health")
    assert res.status_code == 405
    _assert_envelope(res.json(), "Method Not Allowed")


# ─── Routing precedence ──────────────────────────────────────────

async def test_canonical_mount_wins_over_legacy_catch_all(build_app, client_for):
    app = build_app(handler_groups=_probe_groups())
    async with client_for(app) as client:
        res = await client.get("/api/whatsapp/status")
    assert res.status_code == 200
    assert res.json() == {"group": "whatsapp"}


async def test_legacy_alias_reaches_collaborator(build_app, client_for):
    app = build_app(handler_groups=_probe_groups())
    async with client_for(app) as client:
        legacy = await client.get("/api/members/42")
        canonical = await client.get("/api/everything/members/42")
    assert legacy.json() == {"group": "catch-all", "rest": "members/42"}
    assert canonical.json() == {"group": "catch-all", "rest": "members/42"}


async def test_legacy_conflict_first_registered_wins(build_app, client_for):
    app = build_app()
    async with client_for(app) as client:
        res = await client.get("/api/ping")
        reports = await client.get("/api/reports/ping")
    assert res.json() == {"success": True, "group": "customers"}
    assert reports.json() == {"success": True, "group": "reports"}


async def test_whatsapp_has_no_legacy_alias(build_app, client_for):
    app = build_app()
    async with client_for(app) as client:
        res = await client.get("/api/status")
    assert res.status_code == 404


# ─── Error normalization ─────────────────────────────────────────

async def test_http_exception_403_uniform_shape(build_app, client_for):
    app = build_app(handler_groups=_failing_groups())
    async with client_for(app) as client:
        res = await client.get("/api/members/forbidden")
    assert res.status_code == 403
    _assert_envelope(res.json(), "Forbidden area")


async def test_error_with_status_attribute_uniform_shape(build_app, client_for):
    app = build_app(handler_groups=_failing_groups())
    async with client_for(app) as client:
        res = await client.get("/api/members/suspended")
    assert res.status_code == 403
    _assert_envelope(res.json(), "Member is suspended")


async def test_unexpected_error_is_500_and_process_survives(build_app, client_for):
    app = build_app(handler_groups=_failing_groups())
    async with client_for(app) as client:
        res = await client.get("/api/members/crash")
        after = await client.get("/health")
    assert res.status_code == 500
    _assert_envelope(res.json(), "collaborator exploded")
    assert after.status_code == 200


async def test_unexpected_error_hidden_in_production(build_app, client_for):
    app = build_app(handler_groups=_failing_groups(), app_env="production")
    async with client_for(app) as client:
        res = await client.get("/api/members/crash")
    assert res.status_code == 500
    _assert_envelope(res.json(), "Internal server error")


async def test_validation_error_is_client_error(build_app, client_for):
    app = build_app(handler_groups=_failing_groups())
    async with client_for(app) as client:
        res = await client.post("/api/members/typed", json=[1, 2, 3])
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["details"]


# ─── Database-readiness gate ─────────────────────────────────────

async def test_missing_database_uri_fails_gate_and_keeps_serving(build_app, client_for):
    app = build_app(connected=False)
    async with client_for(app) as client:
        first = await client.get("/api/customers/ping")
        health = await client.get("/health")
        second = await client.get("/api/customers/ping")

    assert first.status_code == 500
    body = first.json()
    assert body["success"] is False
    assert body["message"].startswith("Database connection failed")
    assert "DATABASE_URL" in body["message"]
    assert health.status_code == 200
    assert second.status_code == 500
    assert app.state.connection_cache.attempts == 2


async def test_gate_connects_once_across_requests(build_app, client_for, stub_connector):
    app = build_app()
    async with client_for(app) as client:
        for path in ("/api/customers/ping", "/api/attendance/ping", "/api/ping"):
            assert (await client.get(path)).status_code == 200
    assert stub_connector.calls == 1
    assert app.state.connection_cache.connected


async def test_gate_does_not_run_for_unmatched_paths(build_app, client_for, stub_connector):
    app = build_app()
    async with client_for(app) as client:
        await client.get("/nothing/here")
    assert stub_connector.calls == 0


# ─── Body decoding ───────────────────────────────────────────────

async def test_json_body_decoded_into_request_state(build_app, client_for):
    app = build_app(handler_groups=_failing_groups())
    async with client_for(app) as client:
        res = await client.post("/api/members/echo", json={"name": "Ana", "plan": "gold"})
    assert res.json() == {"body": {"name": "Ana", "plan": "gold"}}


async def test_urlencoded_body_decoded_into_request_state(build_app, client_for):
    app = build_app(handler_groups=_failing_groups())
    async with client_for(app) as client:
        res = await client.post("/api/members/echo", data={"name": "Ana", "visits": "3"})
    assert res.json() == {"body": {"name": "Ana", "visits": "3"}}


async def test_body_still_available_to_typed_handlers(build_app, client_for):
    app = build_app(handler_groups=_failing_groups())
    async with client_for(app) as client:
        res = await client.post("/api/members/typed", json={"id": 7})
    assert res.status_code == 200
    assert res.json() == {"payload": {"id": 7}}


async def test_malformed_json_rejected(build_app, client_for):
    app = build_app(handler_groups=_failing_groups())
    async with client_for(app) as client:
        res = await client.post(
            "/api/members/echo", content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["message"].startswith("Malformed JSON body")


async def test_oversized_body_rejected(build_app, client_for):
    app = build_app(handler_groups=_failing_groups(), max_body_bytes=16)
    async with client_for(app) as client:
        res = await client.post("/api/members/echo", json={"notes": "x" * 64})
    assert res.status_code == 413
    _assert_envelope(res.json(), "Request body exceeds the 16 byte limit")


async def test_default_body_ceiling_is_50mb(make_settings):
    assert make_settings().max_body_bytes == 50 * 1024 * 1024


# ─── CORS ────────────────────────────────────────────────────────

async def test_preflight_from_allowed_origin(build_app, client_for):
    app = build_app()
    async with client_for(app) as client:
        res = await client.options(
            "/api/customers/ping",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "PUT",
                "Access-Control-Request-Headers": "Content-Type, Authorization",
            },
        )
    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert res.headers["access-control-allow-credentials"] == "true"
    assert "PUT" in res.headers["access-control-allow-methods"]


async def test_preflight_from_unknown_origin_rejected(build_app, client_for):
    app = build_app()
    async with client_for(app) as client:
        res = await client.options(
            "/api/customers/ping",
            headers={"Origin": "http://evil.example", "Access-Control-Request-Method": "GET"},
        )
    assert res.status_code == 400
    assert "access-control-allow-origin" not in res.headers


async def test_simple_request_annotated_for_allowed_origin(build_app, client_for):
    app = build_app()
    async with client_for(app) as client:
        res = await client.get("/health", headers={"Origin": "http://127.0.0.1:3000"})
    assert res.headers["access-control-allow-origin"] == "http://127.0.0.1:3000"


# ─── Access log ──────────────────────────────────────────────────

async def test_access_log_records_method_and_path(build_app, client_for, caplog):
    app = build_app()
    with caplog.at_level(logging.INFO, logger="gymdesk.api.middleware"):
        async with client_for(app) as client:
            await client.get("/health")
    records = [r for r in caplog.records if r.name == "gymdesk.api.middleware"]
    assert any(r.getMessage() == "GET /health" for r in records)
    assert any(getattr(r, "status_code", None) == 200 for r in records)


# ─── Collaborator database surface ───────────────────────────────

async def test_get_db_yields_session_from_shared_connection(build_app, client_for):
    router = APIRouter()

    @router.get("/count")
    async def count(db=Depends(get_db)):
        result = await db.execute(text("SELECT 41 + 1"))
        return {"value": result.scalar_one()}

    app = build_app(
        connected=False, database_url="sqlite+aiosqlite:///:memory:",
        handler_groups=[HandlerGroup("stats", "/api/stats", router, legacy=False)],
    )
    async with client_for(app) as client:
        res = await client.get("/api/stats/count")
    try:
        assert res.status_code == 200
        assert res.json() == {"value": 42}
        assert app.state.connection_cache.attempts == 1
    finally:
        await app.state.connection_cache.dispose()

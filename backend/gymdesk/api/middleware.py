"""Pipeline Middleware - pure ASGI stages wrapped around the FastAPI router.

Invariants:
    - ErrorBoundaryMiddleware renders every exception raised below it exactly once,
      through normalize_error(); it never re-raises into the server
    - BodyDecodingMiddleware never lets more than max_body_bytes reach the app
    - AccessLogMiddleware has no influence on control flow
    - Non-HTTP scopes (lifespan, websocket) pass through untouched
"""

import json
import logging
import time
from urllib.parse import parse_qsl

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from gymdesk.core.errors import (
    MalformedBodyError, PayloadTooLargeError, normalize_error,
)

logger = logging.getLogger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
JSON_TYPES = ("application/json",)
FORM_TYPE = "application/x-www-form-urlencoded"


def _header(scope: Scope, name: bytes) -> str | None:
    for raw_name, raw_value in scope.get("headers", []):
        if raw_name.lower() == name:
            return raw_value.decode("latin-1")
    return None


class ErrorBoundaryMiddleware:
    """Outermost failure boundary: any exception becomes the uniform JSON envelope."""

    def __init__(self, app: ASGIApp, expose_details: bool = True) -> None:
        self.app = app
        self.expose_details = expose_details

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            status, body = normalize_error(exc, self.expose_details)
            log = logger.error if status >= 500 else logger.warning
            log(
                f"Request failed: {body['message']}",
                extra={
                    "method": scope.get("method"), "path": scope.get("path"),
                    "status_code": status,
                    "error_code": getattr(exc, "code", None),
                },
                exc_info=status >= 500,
            )
            if response_started:
                # Headers already sent; the client sees a truncated response
                return
            await JSONResponse(body, status_code=status)(scope, receive, send)


class BodyDecodingMiddleware:
    """Enforce the body ceiling and decode JSON / URL-encoded bodies.

    The decoded value is stored in scope["state"]["body"] (request.state.body);
    the raw bytes are replayed to the application unchanged.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int = 50 * 1024 * 1024) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("method") not in BODY_METHODS:
            await self.app(scope, receive, send)
            return

        declared = _header(scope, b"content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_body_bytes:
            raise PayloadTooLargeError(self.max_body_bytes)

        body = await self._read_body(receive)
        content_type = (_header(scope, b"content-type") or "").split(";")[0].strip().lower()
        scope.setdefault("state", {})["body"] = decode_body(body, content_type)

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _read_body(self, receive: Receive) -> bytes:
        chunks: list[bytes] = []
        size = 0
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
            chunk = message.get("body", b"")
            size += len(chunk)
            if size > self.max_body_bytes:
                raise PayloadTooLargeError(self.max_body_bytes)
            chunks.append(chunk)
            if not message.get("more_body", False):
                break
        return b"".join(chunks)


def decode_body(body: bytes, content_type: str):
    """Parsed body for JSON and URL-encoded payloads, None otherwise."""
    if not body:
        return None
    if content_type in JSON_TYPES or content_type.endswith("+json"):
        try:
            return json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedBodyError("JSON", str(e))
    if content_type == FORM_TYPE:
        try:
            return dict(parse_qsl(
                body.decode("utf-8"), keep_blank_values=True, strict_parsing=True,
            ))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedBodyError("URL-encoded", str(e))
    return None


class AccessLogMiddleware:
    """Log method, path, status and duration for every request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        logger.info(
            f"{scope['method']} {scope['path']}",
            extra={"method": scope["method"], "path": scope["path"]},
        )
        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            logger.info(
                f"{scope['method']} {scope['path']} -> {status_code}",
                extra={
                    "method": scope["method"], "path": scope["path"],
                    "status_code": status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )

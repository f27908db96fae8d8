"""API test fixtures - app factory with isolated settings and an httpx client.

Invariants:
    - Every app gets its own ExecutionContext rooted in tmp_path
    - No lifespan runs: each client sees a fresh, never-connected process
    - The default connector is replaced unless a test asks for a real one
"""

import pytest
from httpx import ASGITransport, AsyncClient

from gymdesk.infrastructure.database import ConnectionCache
from gymdesk.main import create_app


class StubConnector:
    def __init__(self):
        self.calls = 0

    async def __call__(self, uri):
        self.calls += 1
        return object()


@pytest.fixture
def stub_connector():
    return StubConnector()


@pytest.fixture
def build_app(make_settings, tmp_path, stub_connector):
    """Factory: create_app() for an ephemeral host unless overridden."""
    def _build(*, connected=True, handler_groups=None, **overrides):
        options = {"execution_mode": "ephemeral", "storage_path": str(tmp_path / "storage")}
        options.update(overrides)
        settings = make_settings(**options)
        cache = None
        if connected:
            cache = ConnectionCache("sqlite+aiosqlite:///:memory:", connector=stub_connector)
        return create_app(settings, handler_groups=handler_groups, connection_cache=cache)
    return _build


@pytest.fixture
def client_for():
    """Async context manager factory: httpx client bound to an app."""
    def _client(app):
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    return _client

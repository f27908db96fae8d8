"""Root conftest - shared test configuration."""

import logging
import os

import pytest

from gymdesk.config import Settings

# Keep the import-time app in gymdesk.main off any real platform or database
os.environ.setdefault("EXECUTION_MODE", "persistent")
os.environ.setdefault("LOG_FORMAT", "text")

# Explicit values so ambient env vars (VERCEL, DATABASE_URL, ...) never leak in
BASE_SETTINGS = dict(
    _env_file=None,
    app_env="development",
    execution_mode="auto",
    vercel=None,
    aws_lambda_function_name=None,
    storage_path=None,
    database_url=None,
    log_format="text",
)


@pytest.fixture
def make_settings():
    """Factory for Settings isolated from the process environment."""
    def _make(**overrides) -> Settings:
        return Settings(**{**BASE_SETTINGS, **overrides})
    return _make


@pytest.fixture(autouse=True)
def restore_root_handlers():
    """create_app() and setup_logging() reconfigure the root logger."""
    handlers = list(logging.root.handlers)
    level = logging.root.level
    yield
    for handler in list(logging.root.handlers):
        if handler not in handlers:
            logging.root.removeHandler(handler)
            handler.close()
    logging.root.setLevel(level)

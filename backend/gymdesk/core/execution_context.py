"""Environment Resolver - classifies the execution context and derives the storage root.

Invariants:
    - resolve() never raises and has no side effects beyond reading its inputs
    - storage_root is always absolute
    - Explicit STORAGE_PATH wins over the ephemeral/persistent default
    - port is None in ephemeral mode (the host owns the listener)

Design Decisions:
    - One immutable ExecutionContext per process: every mode-dependent component
      branches on context.is_ephemeral once instead of re-reading the environment
"""

import tempfile
from dataclasses import dataclass
from pathlib import Path

from gymdesk.config import Settings
from gymdesk.core.domain_types import ExecutionMode, Platform, StorageArea

# backend/ directory: the application's own root
APP_ROOT = Path(__file__).resolve().parents[2]
EPHEMERAL_STORAGE_DIRNAME = "gymdesk"
PERSISTENT_STORAGE_DIRNAME = "storage"


@dataclass(frozen=True)
class ExecutionContext:
    """Immutable per-process execution context."""
    is_ephemeral: bool
    storage_root: Path
    port: int | None
    cors_origins: frozenset[str]
    database_uri: str | None
    app_env: str = "development"
    platform: Platform = Platform.LOCAL

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def environment(self) -> str:
        return "ephemeral" if self.is_ephemeral else "persistent"

    def area_path(self, area: StorageArea) -> Path:
        return self.storage_root / area.directory_name


def detect_platform(settings: Settings) -> Platform:
    if settings.vercel:
        return Platform.VERCEL
    if settings.aws_lambda_function_name:
        return Platform.AWS_LAMBDA
    return Platform.LOCAL


def classify_ephemeral(settings: Settings) -> bool:
    """Explicit execution_mode wins; otherwise any platform signal means ephemeral."""
    if settings.execution_mode is ExecutionMode.EPHEMERAL:
        return True
    if settings.execution_mode is ExecutionMode.PERSISTENT:
        return False
    return detect_platform(settings) is not Platform.LOCAL


def resolve_storage_root(
    settings: Settings, is_ephemeral: bool, temp_dir: str | Path, app_root: Path,
) -> Path:
    if settings.storage_path:
        return Path(settings.storage_path).expanduser().absolute()
    if is_ephemeral:
        return Path(temp_dir).absolute() / EPHEMERAL_STORAGE_DIRNAME
    return Path(app_root).absolute() / PERSISTENT_STORAGE_DIRNAME


def resolve_database_uri(settings: Settings, is_ephemeral: bool) -> str | None:
    """Configured URI, else the development fallback for local non-production runs."""
    if settings.database_url:
        return settings.database_url
    if not is_ephemeral and settings.app_env.lower() != "production":
        return settings.development_database_url
    return None


def resolve(
    settings: Settings,
    *,
    temp_dir: str | Path | None = None,
    app_root: Path = APP_ROOT,
) -> ExecutionContext:
    """Build the ExecutionContext for this process."""
    is_ephemeral = classify_ephemeral(settings)
    return ExecutionContext(
        is_ephemeral=is_ephemeral,
        storage_root=resolve_storage_root(
            settings, is_ephemeral, temp_dir or tempfile.gettempdir(), app_root,
        ),
        port=None if is_ephemeral else settings.port,
        cors_origins=frozenset(settings.cors_origins),
        database_uri=resolve_database_uri(settings, is_ephemeral),
        app_env=settings.app_env,
        platform=detect_platform(settings),
    )

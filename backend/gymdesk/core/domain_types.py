"""Domain Types - enums for process-scoped operational state.

Invariants:
    - All valid states encoded as Enums, no raw string matching
    - StorageArea values are the logical names; directory_name is the on-disk name
"""

from enum import Enum


class ExecutionMode(str, Enum):
    """Requested execution mode. AUTO defers to the platform signal."""
    AUTO = "auto"
    EPHEMERAL = "ephemeral"
    PERSISTENT = "persistent"


class Platform(str, Enum):
    """Host that launched the process."""
    VERCEL = "vercel"
    AWS_LAMBDA = "aws-lambda"
    LOCAL = "local"


class ConnectionStatus(str, Enum):
    """Connection Cache states.

    Transitions: DISCONNECTED -> CONNECTING -> CONNECTED | FAILED,
    FAILED -> CONNECTING on the next call. CONNECTED is terminal.
    """
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class StorageArea(str, Enum):
    """Logical storage areas created under the storage root."""
    UPLOADS = "uploads"
    AUTH_STATE = "auth-state"
    LOGS = "logs"

    @property
    def directory_name(self) -> str:
        return _AREA_DIRECTORIES[self]


_AREA_DIRECTORIES = {
    StorageArea.UPLOADS: "uploads",
    StorageArea.AUTH_STATE: "whatsapp-auth",
    StorageArea.LOGS: "logs",
}

ALL_STORAGE_AREAS: tuple[StorageArea, ...] = tuple(StorageArea)

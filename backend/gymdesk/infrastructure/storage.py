"""Storage Initializer - best-effort creation of the logical storage areas.

Invariants:
    - Each area is attempted independently; one failure never skips the others
    - Failures are returned as AreaOutcome values and logged, never raised
    - ensure_areas() is idempotent: existing directories are a no-op
    - StorageInitializer runs ensure_areas() at most once per process

Design Decisions:
    - Eager in persistent mode (lifespan), lazy in ephemeral mode (path_for on first use):
      ephemeral hosts may reject writes outside their scratch area
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from gymdesk.core.domain_types import ALL_STORAGE_AREAS, StorageArea
from gymdesk.core.errors import StorageError
from gymdesk.core.execution_context import ExecutionContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AreaOutcome:
    """Result of ensuring one area: error is None on success."""
    area: StorageArea
    path: Path
    created: bool = False
    error: StorageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _ensure_area(root: Path, area: StorageArea) -> AreaOutcome:
    path = Path(root) / area.directory_name
    try:
        if path.is_dir():
            return AreaOutcome(area, path)
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return AreaOutcome(
            area, path,
            error=StorageError(area.value, str(path), e.strerror or str(e)),
        )
    return AreaOutcome(area, path, created=True)


def ensure_areas(
    root: Path, areas: Iterable[StorageArea] = ALL_STORAGE_AREAS,
) -> list[AreaOutcome]:
    """Create each area under root if absent."""
    return [_ensure_area(root, area) for area in areas]


class StorageInitializer:
    """Process-scoped, run-once wrapper around ensure_areas()."""

    def __init__(
        self,
        context: ExecutionContext,
        areas: Iterable[StorageArea] = ALL_STORAGE_AREAS,
    ):
        self.context = context
        self.areas = tuple(areas)
        self._outcomes: dict[StorageArea, AreaOutcome] | None = None

    @property
    def initialized(self) -> bool:
        return self._outcomes is not None

    def ensure(self) -> list[AreaOutcome]:
        if self._outcomes is None:
            outcomes = ensure_areas(self.context.storage_root, self.areas)
            for outcome in outcomes:
                _log_outcome(outcome)
            self._outcomes = {o.area: o for o in outcomes}
        return list(self._outcomes.values())

    def path_for(self, area: StorageArea) -> Path | None:
        """Directory for area, or None when it could not be created."""
        self.ensure()
        outcome = self._outcomes.get(area)
        if outcome is None or not outcome.ok:
            return None
        return outcome.path

    def available(self) -> dict[str, bool]:
        return {o.area.value: o.ok for o in self.ensure()}


def _log_outcome(outcome: AreaOutcome) -> None:
    if outcome.error is not None:
        logger.warning(outcome.error.message, extra={"area": outcome.area.value})
    elif outcome.created:
        logger.info(
            f"Created directory: {outcome.path}", extra={"area": outcome.area.value},
        )

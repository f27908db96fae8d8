"""Route Composer - ordered (prefix, handler group) bindings built once at startup.

Invariants:
    - Canonical bindings come first, in group order; legacy bindings come last
    - Only groups with legacy=True are re-mounted under the legacy prefix
    - RouteTable is immutable after compose()
    - Registration order is the tie-break: the first binding whose route matches wins

Design Decisions:
    - router is opaque here (Any): core/ stays free of FastAPI imports, the api
      layer installs the table into the application
"""

from dataclasses import dataclass
from typing import Any, Iterable

LEGACY_PREFIX = "/api"


@dataclass(frozen=True)
class HandlerGroup:
    """A mountable collaborator: a router plus its canonical prefix."""
    name: str
    prefix: str
    router: Any
    legacy: bool = True
    entry_path: str = ""


@dataclass(frozen=True)
class RouteBinding:
    prefix: str
    group: HandlerGroup
    is_legacy: bool = False


@dataclass(frozen=True)
class RouteTable:
    bindings: tuple[RouteBinding, ...]

    def __iter__(self):
        return iter(self.bindings)

    def __len__(self) -> int:
        return len(self.bindings)

    def canonical(self) -> tuple[RouteBinding, ...]:
        return tuple(b for b in self.bindings if not b.is_legacy)

    def legacy(self) -> tuple[RouteBinding, ...]:
        return tuple(b for b in self.bindings if b.is_legacy)

    def available_routes(self) -> list[str]:
        """Canonical entry routes in registration order, without duplicates."""
        seen: list[str] = []
        for binding in self.canonical():
            route = binding.prefix + binding.group.entry_path
            if route not in seen:
                seen.append(route)
        return seen


def _normalize_prefix(prefix: str) -> str:
    prefix = "/" + prefix.strip("/")
    return "" if prefix == "/" else prefix


def compose(
    groups: Iterable[HandlerGroup], legacy_prefix: str = LEGACY_PREFIX,
) -> RouteTable:
    """Canonical mounts first, then every legacy-enabled group under legacy_prefix."""
    groups = tuple(groups)
    names = [g.name for g in groups]
    duplicates = {n for n in names if names.count(n) > 1}
    if duplicates:
        raise ValueError(f"Duplicate handler group names: {sorted(duplicates)}")

    legacy = _normalize_prefix(legacy_prefix)
    canonical = [
        RouteBinding(_normalize_prefix(g.prefix), g) for g in groups
    ]
    aliases = [
        RouteBinding(legacy, g, is_legacy=True) for g in groups if g.legacy
    ]
    return RouteTable(tuple(canonical + aliases))

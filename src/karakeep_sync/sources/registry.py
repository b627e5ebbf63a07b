"""Adapter registry — maps type strings to adapter classes."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from karakeep_sync.config import Config
    from karakeep_sync.sources.base import SourceAdapter

# Insertion order is the order sources are scheduled in
_REGISTRY: dict[str, type[SourceAdapter]] = {}


def register_adapter(type_name: str, cls: type[SourceAdapter]) -> None:
    """Register an adapter class for a given type name."""
    _REGISTRY[type_name] = cls


def list_sources(
    config: Config,
    transport: httpx.BaseTransport | None = None,
) -> list[SourceAdapter]:
    """Construct one adapter per registered source, in registration order.

    Adapters are built whether or not they are activated; callers filter
    with ``is_activated()``.
    """
    return [cls(config, transport=transport) for cls in _REGISTRY.values()]

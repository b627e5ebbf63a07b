"""Scheduled job functions — one sync run per source."""

from __future__ import annotations

import logging

from karakeep_sync.config import Config
from karakeep_sync.karakeep import KarakeepClient
from karakeep_sync.sources import list_sources
from karakeep_sync.sources.base import SourceAdapter
from karakeep_sync.sync import sync

logger = logging.getLogger(__name__)


def run_sync(adapter: SourceAdapter, client: KarakeepClient) -> int:
    """Sync one source, isolating its failures from every other source.

    Returns the number of bookmarks created, or 0 if the run failed.
    """
    list_name = adapter.list_name()
    logger.info("Starting sync for list '%s'", list_name)
    try:
        return sync(adapter, client)
    except Exception:
        logger.exception("Sync failed for list '%s'", list_name)
        return 0


def run_all(config: Config, client: KarakeepClient) -> dict[str, int]:
    """Run every activated source once, in registry order."""
    results: dict[str, int] = {}
    for adapter in list_sources(config):
        if not adapter.is_activated():
            logger.info("Source for list '%s' is not activated, skipping", adapter.list_name())
            continue
        results[adapter.list_name()] = run_sync(adapter, client)
    return results

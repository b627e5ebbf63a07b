"""Sync engine — mirrors one source's batch stream into a Karakeep list."""

from __future__ import annotations

import logging
from contextlib import closing

from karakeep_sync.karakeep import KarakeepClient
from karakeep_sync.sources.base import SourceAdapter

logger = logging.getLogger(__name__)

# Consecutive already-synced items that mean the run has caught up
CONSECUTIVE_EXISTING_LIMIT = 5


def sync(adapter: SourceAdapter, client: KarakeepClient) -> int:
    """Mirror ``adapter``'s items into its Karakeep list.

    Items are processed strictly in stream order. Each one is created if
    Karakeep does not already hold its URL, and added to the list either
    way. Once CONSECUTIVE_EXISTING_LIMIT items in a row already exist, the
    rest of the stream is skipped: sources emit newest first, so everything
    after that point was synced by an earlier run.

    Returns the number of bookmarks created. SinkError, AuthError and a hard
    FetchError propagate to the caller.
    """
    list_name = adapter.list_name()
    list_id = client.ensure_list_exists(list_name)

    existing = 0
    created_count = 0

    with closing(adapter.open_batch_stream()) as stream:
        for batch in stream:
            logger.info(
                "Processing chunk for list '%s' (count=%d)", list_name, len(batch)
            )
            for item in batch:
                if client.upsert_bookmark_to_list(item, list_id):
                    existing = 0
                    created_count += 1
                else:
                    existing += 1

                if existing >= CONSECUTIVE_EXISTING_LIMIT:
                    logger.info(
                        "%d consecutive existing bookmarks in '%s', stopping sync "
                        "(created=%d)",
                        existing, list_name, created_count,
                    )
                    return created_count

    logger.info("Sync complete for list '%s' (created=%d)", list_name, created_count)
    return created_count

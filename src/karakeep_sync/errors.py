"""Error taxonomy shared by sources, the sink client, and the sync engine."""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync failures."""


class AuthError(SyncError):
    """Credential or token exchange failed for a source."""


class FetchError(SyncError):
    """HTTP or body-parse failure while fetching a page from a source."""


class SinkError(SyncError):
    """Karakeep returned an unusable response."""


class ConfigError(SyncError, ValueError):
    """Required configuration is missing or invalid."""

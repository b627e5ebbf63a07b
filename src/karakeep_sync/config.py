"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from karakeep_sync.errors import ConfigError

DEFAULT_SCHEDULE = "@daily"


@dataclass(frozen=True)
class HNSettings:
    auth: str | None = None
    schedule: str = DEFAULT_SCHEDULE


@dataclass(frozen=True)
class RedditSettings:
    client_id: str | None = None
    client_secret: str | None = None
    refresh_token: str | None = None
    schedule: str = DEFAULT_SCHEDULE


@dataclass(frozen=True)
class GitHubSettings:
    token: str | None = None
    schedule: str = DEFAULT_SCHEDULE


@dataclass(frozen=True)
class PinboardSettings:
    token: str | None = None
    schedule: str = DEFAULT_SCHEDULE


@dataclass(frozen=True)
class Config:
    """Application configuration. All values sourced from environment variables."""

    # Required
    karakeep_url: str
    karakeep_auth: str

    # Optional — Sources
    hn: HNSettings = field(default_factory=HNSettings)
    reddit: RedditSettings = field(default_factory=RedditSettings)
    github: GitHubSettings = field(default_factory=GitHubSettings)
    pinboard: PinboardSettings = field(default_factory=PinboardSettings)

    # Optional — Application
    run_immediate: bool = True
    http_timeout_seconds: float = 30.0
    log_level: str = "INFO"
    log_format: str = "text"


_REQUIRED_VARS = [
    "KS_KARAKEEP_URL",
    "KS_KARAKEEP_AUTH",
]

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _optional(name: str) -> str | None:
    """Return the variable's value, treating empty strings as unset."""
    value = os.environ.get(name, "").strip()
    return value or None


def _schedule(name: str) -> str:
    return _optional(name) or DEFAULT_SCHEDULE


def _bool(name: str, default: bool) -> bool:
    value = _optional(name)
    if value is None:
        return default
    if value.lower() in _TRUE_VALUES:
        return True
    if value.lower() in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got '{value}'")


def _float(name: str, default: float) -> float:
    value = _optional(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got '{value}'") from exc


def load_config(env_path: str | Path | None = None) -> Config:
    """Load configuration from environment variables.

    Loads a .env file if present (for local development), then validates
    that all required variables are set. Raises ConfigError listing any
    missing variables.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [var for var in _REQUIRED_VARS if not _optional(var)]
    if missing:
        raise ConfigError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    return Config(
        # Required
        karakeep_url=os.environ["KS_KARAKEEP_URL"].strip().rstrip("/"),
        karakeep_auth=os.environ["KS_KARAKEEP_AUTH"].strip(),
        # Optional — Sources
        hn=HNSettings(
            auth=_optional("KS_HN_AUTH"),
            schedule=_schedule("KS_HN_SCHEDULE"),
        ),
        reddit=RedditSettings(
            client_id=_optional("KS_REDDIT_CLIENTID"),
            client_secret=_optional("KS_REDDIT_CLIENTSECRET"),
            refresh_token=_optional("KS_REDDIT_REFRESHTOKEN"),
            schedule=_schedule("KS_REDDIT_SCHEDULE"),
        ),
        github=GitHubSettings(
            token=_optional("KS_GITHUB_TOKEN"),
            schedule=_schedule("KS_GITHUB_SCHEDULE"),
        ),
        pinboard=PinboardSettings(
            token=_optional("KS_PINBOARD_TOKEN"),
            schedule=_schedule("KS_PINBOARD_SCHEDULE"),
        ),
        # Optional — Application
        run_immediate=_bool("KS_RUN_IMMEDIATE", True),
        http_timeout_seconds=_float("KS_HTTP_TIMEOUT_SECONDS", 30.0),
        log_level=_optional("KS_LOG_LEVEL") or "INFO",
        log_format=_optional("KS_LOG_FORMAT") or "text",
    )

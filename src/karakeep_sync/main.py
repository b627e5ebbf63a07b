"""Application entry point — schedules a recurring sync job per source."""

from __future__ import annotations

import json
import logging
import re
import sys

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from karakeep_sync.config import Config, load_config
from karakeep_sync.errors import ConfigError
from karakeep_sync.jobs import run_sync
from karakeep_sync.karakeep import KarakeepClient
from karakeep_sync.sources import list_sources

logger = logging.getLogger("karakeep_sync")

_SCHEDULE_ALIASES = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * sun",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

# Crontab weekday numbers; 0 and 7 are both Sunday
_WEEKDAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun"]
_NUMERIC_WEEKDAY_RE = re.compile(r"^(\*|\d+(?:-\d+)?)(?:/(\d+))?$")


def _setup_logging(log_level: str, log_format: str) -> None:
    """Configure root logger based on config."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps(
                {
                    "time": "%(asctime)s",
                    "level": "%(levelname)s",
                    "logger": "%(name)s",
                    "message": "%(message)s",
                }
            )
        )
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # One line per HTTP request drowns out the sync progress
    for noisy in ("httpx", "httpcore", "apscheduler.executors"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))


def _crontab_day_of_week(field: str) -> str:
    """Rewrite crontab weekday numbers as day names.

    APScheduler numbers weekdays from Monday, crontab from Sunday. Names
    mean the same to both, so numeric parts are expanded into name lists.
    """
    parts: list[str] = []
    for part in field.split(","):
        match = _NUMERIC_WEEKDAY_RE.match(part)
        if part == "*" or match is None:
            parts.append(part)
            continue

        base, step = match.group(1), match.group(2)
        if base == "*":
            first, last = 0, 7
        elif "-" in base:
            first, last = (int(n) for n in base.split("-"))
        else:
            first = int(base)
            last = first if step is None else 7
        stride = int(step) if step is not None else 1
        if last > 7 or first > last or stride == 0:
            raise ValueError(f"invalid day of week '{part}'")

        days = dict.fromkeys(_WEEKDAY_NAMES[day] for day in range(first, last + 1, stride))
        parts.append(",".join(days))
    return ",".join(parts)


def parse_schedule(expr: str, timezone=None) -> CronTrigger:
    """Turn a crontab expression or ``@daily``-style alias into a trigger.

    Accepts five crontab fields, or six with a leading seconds field as
    written for cron-with-seconds schedulers. Weekday numbers follow
    crontab: 0 and 7 are Sunday, 1 is Monday.
    """
    crontab = _SCHEDULE_ALIASES.get(expr.strip().lower(), expr.strip())
    fields = crontab.split()
    second = "0"
    if len(fields) == 6:
        second, *fields = fields
    if len(fields) != 5:
        raise ConfigError(
            f"Invalid schedule '{expr}': expected 5 fields, or 6 with leading seconds"
        )

    minute, hour, day, month, day_of_week = fields
    try:
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=_crontab_day_of_week(day_of_week),
            timezone=timezone,
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid schedule '{expr}': {exc}") from exc


def build_scheduler(
    config: Config,
    client: KarakeepClient,
    scheduler: BaseScheduler | None = None,
) -> BaseScheduler:
    """Register sync jobs for every activated source.

    Schedules are parsed here so a bad expression fails at startup rather
    than mid-run.
    """
    if scheduler is None:
        scheduler = BlockingScheduler()

    for adapter in list_sources(config):
        list_name = adapter.list_name()
        if not adapter.is_activated():
            logger.info("Source for list '%s' is not activated, skipping", list_name)
            continue

        schedule = adapter.recurring_schedule()
        trigger = parse_schedule(schedule)

        if config.run_immediate:
            scheduler.add_job(
                run_sync,
                trigger=DateTrigger(),
                args=[adapter, client],
                id=f"{list_name}:immediate",
                name=f"Initial sync: {list_name}",
                misfire_grace_time=None,
            )

        logger.info("Scheduling recurring sync for list '%s' (%s)", list_name, schedule)
        scheduler.add_job(
            run_sync,
            trigger=trigger,
            args=[adapter, client],
            id=list_name,
            name=f"Sync: {list_name}",
            max_instances=1,
            coalesce=True,
        )

    return scheduler


def main() -> None:
    """Load config, set up logging, and run the scheduler until interrupted."""
    config = load_config()

    _setup_logging(config.log_level, config.log_format)

    logger.info("karakeep-sync starting (karakeep=%s)", config.karakeep_url)

    with KarakeepClient(
        config.karakeep_url,
        config.karakeep_auth,
        timeout=config.http_timeout_seconds,
    ) as client:
        scheduler = build_scheduler(config, client)
        if not scheduler.get_jobs():
            logger.warning("No sources are activated; nothing to do")
            return
        try:
            scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler shutting down")


if __name__ == "__main__":
    main()

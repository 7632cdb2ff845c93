"""Utility helpers for config parsing and time windows."""

from __future__ import annotations

import datetime as dt

WEEK_SECONDS = 7 * 24 * 60 * 60


def merge_dicts(base: dict, updates: dict) -> dict:
    """Deep-merge two dictionaries without mutating inputs."""
    if not isinstance(base, dict) or not isinstance(updates, dict):
        return updates
    merged = dict(base)
    for key, value in updates.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def ensure_list(value: object | None) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return [value]


def now_local() -> dt.datetime:
    """Current time as an aware datetime in the machine's local timezone."""
    return dt.datetime.now().astimezone()


def added_within(timestamp: int | None, now: dt.datetime, seconds: int = WEEK_SECONDS) -> bool:
    """True when an epoch timestamp is strictly less than ``seconds`` old."""
    if timestamp is None:
        return False
    return int(now.timestamp()) - timestamp < seconds


def date_from_timestamp(timestamp: int, now: dt.datetime) -> dt.date:
    return dt.datetime.fromtimestamp(timestamp, tz=now.tzinfo or dt.timezone.utc).date()


def parse_date(value: str | None) -> dt.date | None:
    if not value:
        return None
    try:
        return dt.date.fromisoformat(value.strip())
    except ValueError:
        return None

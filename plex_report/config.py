"""Load and validate Plex Report configuration."""

from __future__ import annotations

import json
import os
from typing import Any

import yaml

from plex_report.utils import merge_dicts

DEFAULTS: dict[str, Any] = {
    "plex": {
        "url": "http://localhost:32400",
        "token": "",
        "timeout_seconds": 30,
        "client_id": "",
    },
    "tmdb": {
        "api_key": "",
        "url": "https://api.themoviedb.org/3",
    },
    "omdb": {
        "api_key": "",
        "url": "https://www.omdbapi.com/",
    },
    "tvdb": {
        "api_key": "",
        "url": "https://thetvdb.com/api",
        "language": "en",
    },
    "mail": {
        "enabled": True,
        "host": "",
        "port": 587,
        "username": "",
        "password": "",
        "use_tls": True,
        "sender": "",
        "recipients": [],
        "subject": "New on Plex this week",
        "timeout_seconds": 30,
    },
    "schedule": {
        "interval_minutes": 0,
        "jitter_seconds": 30,
    },
    "logging": {
        "file": "",
    },
}

SECRET_ENV_DEFAULTS = {
    ("plex", "token"): "PLEX_TOKEN",
    ("tmdb", "api_key"): "TMDB_API_KEY",
    ("omdb", "api_key"): "OMDB_API_KEY",
    ("tvdb", "api_key"): "TVDB_API_KEY",
    ("mail", "password"): "SMTP_PASSWORD",
}


class ConfigError(ValueError):
    pass


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _require_non_negative_int(errors: list[str], path: str, value: Any) -> None:
    if value is None:
        return
    if not _is_int(value):
        errors.append(f"{path} must be an integer")
        return
    if value < 0:
        errors.append(f"{path} must be >= 0")


def _require_positive_int(errors: list[str], path: str, value: Any) -> None:
    if value is None:
        return
    if not _is_int(value):
        errors.append(f"{path} must be an integer")
        return
    if value <= 0:
        errors.append(f"{path} must be > 0")


def _require_url(errors: list[str], path: str, value: Any) -> None:
    url = _as_str(value).strip()
    if not url:
        errors.append(f"{path} is required")
    elif not (url.startswith("http://") or url.startswith("https://")):
        errors.append(f"{path} must start with http:// or https://")


def _require_list_of_strings(errors: list[str], path: str, value: Any) -> None:
    if value is None:
        return
    if not isinstance(value, list):
        errors.append(f"{path} must be a list")
        return
    for idx, entry in enumerate(value):
        if not isinstance(entry, str):
            errors.append(f"{path}[{idx}] must be a string")


def _resolve_secret(raw_value: Any, default_env: str) -> str:
    value = _as_str(raw_value).strip()
    if value.startswith("env:"):
        env_name = value.split(":", 1)[1].strip()
        return os.getenv(env_name, "").strip()
    if value.startswith("$"):
        env_name = value[1:]
        return os.getenv(env_name, "").strip()
    if not value:
        return os.getenv(default_env, "").strip()
    return value


def _read_file(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        if path.lower().endswith((".yaml", ".yml")):
            try:
                raw = yaml.safe_load(handle)
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        else:
            raw = json.load(handle)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")
    return raw


def load_config(path: str) -> dict[str, Any]:
    config = merge_dicts(DEFAULTS, _read_file(path))
    for section in DEFAULTS:
        if not isinstance(config.get(section), dict):
            raise ConfigError(f"Config section '{section}' in {path} must be a mapping")
    for (section, key), env_name in SECRET_ENV_DEFAULTS.items():
        values = config.setdefault(section, {})
        values[key] = _resolve_secret(values.get(key, ""), env_name)
    return config


def validate_config(config: dict[str, Any]) -> None:
    errors: list[str] = []
    plex = config.get("plex", {})
    _require_url(errors, "plex.url", plex.get("url"))
    if not _as_str(plex.get("token")).strip():
        errors.append("plex.token is required (or set PLEX_TOKEN env var)")
    _require_positive_int(errors, "plex.timeout_seconds", plex.get("timeout_seconds"))

    for section, env_name in (("tmdb", "TMDB_API_KEY"), ("omdb", "OMDB_API_KEY"), ("tvdb", "TVDB_API_KEY")):
        provider = config.get(section, {})
        if not isinstance(provider, dict):
            errors.append(f"{section} must be an object")
            continue
        if not _as_str(provider.get("api_key")).strip():
            errors.append(f"{section}.api_key is required (or set {env_name} env var)")
        _require_url(errors, f"{section}.url", provider.get("url"))

    mail = config.get("mail", {})
    if not isinstance(mail, dict):
        errors.append("mail must be an object")
    elif mail.get("enabled"):
        if not _as_str(mail.get("host")).strip():
            errors.append("mail.host is required when mail.enabled=true")
        if not _as_str(mail.get("sender")).strip():
            errors.append("mail.sender is required when mail.enabled=true")
        _require_positive_int(errors, "mail.port", mail.get("port"))
        _require_positive_int(errors, "mail.timeout_seconds", mail.get("timeout_seconds"))
        _require_list_of_strings(errors, "mail.recipients", mail.get("recipients"))

    schedule = config.get("schedule", {})
    if isinstance(schedule, dict):
        _require_non_negative_int(errors, "schedule.interval_minutes", schedule.get("interval_minutes"))
        _require_non_negative_int(errors, "schedule.jitter_seconds", schedule.get("jitter_seconds"))

    if errors:
        raise ConfigError("Config errors:\n- " + "\n- ".join(errors))

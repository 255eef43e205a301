"""YAML config parsing, defaults, validation."""

from __future__ import annotations

from datetime import tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from practicetrack.models import TrackerConfig
from practicetrack.periods import local_timezone


class ConfigError(Exception):
    pass


_SECTIONS = {
    "engine": {"min_section_seconds"},
    "calendar": {"timezone"},
    "log": {"path", "echo"},
}


def validate_version(raw: dict) -> None:
    version = raw.get("version")
    if not version:
        raise ConfigError("Missing 'version' field in config")
    if str(version) not in ("1.0", "1"):
        raise ConfigError(f"Unsupported config version: {version}")


def _section(raw: dict, name: str) -> dict:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    unknown = set(section.keys()) - _SECTIONS[name]
    if unknown:
        raise ConfigError(f"'{name}': unknown key(s): {', '.join(sorted(unknown))}")
    return section


def resolve_timezone(name: str | None) -> tzinfo:
    """ZoneInfo for a configured name; None means the system local zone."""
    if name is None:
        return local_timezone()
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise ConfigError(f"Unknown timezone: {name}") from e


def parse_config(raw: dict) -> TrackerConfig:
    validate_version(raw)
    unknown = set(raw.keys()) - set(_SECTIONS) - {"version"}
    if unknown:
        raise ConfigError(f"Unknown config section(s): {', '.join(sorted(unknown))}")

    engine = _section(raw, "engine")
    calendar = _section(raw, "calendar")
    log = _section(raw, "log")

    min_section_seconds = engine.get("min_section_seconds", 1)
    if not isinstance(min_section_seconds, int) or isinstance(min_section_seconds, bool) \
            or min_section_seconds < 1:
        raise ConfigError(
            f"engine.min_section_seconds must be a positive integer, got {min_section_seconds!r}"
        )

    timezone = calendar.get("timezone")
    resolve_timezone(timezone)

    return TrackerConfig(
        version=str(raw["version"]),
        min_section_seconds=min_section_seconds,
        timezone=timezone,
        log_path=log.get("path"),
        log_echo=bool(log.get("echo", False)),
    )


def load_config(path: str) -> TrackerConfig:
    """Load and validate a practicetrack YAML config file."""
    with open(path) as f:
        raw = yaml.safe_load(f)

    if not raw:
        raise ConfigError(f"Empty config file: {path}")
    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a mapping: {path}")

    return parse_config(raw)

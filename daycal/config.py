"""
YAML configuration with named profiles.

Settings are layered: built-in defaults, then the top-level keys of the
config file, then the selected profile, then flags given on the command line.
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .events import (
    EVENT_TYPES,
    FetchQuery,
    STATUS_ACCEPTED,
    STATUS_NO_RESPONSE,
    TYPE_DEFAULT,
    TYPE_FOCUS_TIME,
    TYPE_OUT_OF_OFFICE,
    TYPE_WORKING_LOCATION,
)
from .filters import resolve_calendar_names

logger = logging.getLogger(__name__)

CONFIG_DEFAULT_PATH = Path.home() / ".config" / "daycal" / "config.yaml"
PROFILE_ENV_VAR = "DAYCAL_PROFILE"


class ConfigError(Exception):
    pass


@dataclass
class Settings:
    server_path: str = "gcal-mcp-server"
    timezone: str = ""
    days: int = 7
    # Comma separated calendar names or ids, empty for all
    calendars: str = ""
    ooo: bool = True
    focus: bool = False
    workloc: bool = False
    all_types: bool = False
    accepted: bool = True
    subscribed: bool = True
    smart_ooo: bool = False
    primary_calendar: str = ""
    no_allday: bool = False

    def include_types(self) -> frozenset:
        if self.all_types:
            return frozenset(EVENT_TYPES)
        types = {TYPE_DEFAULT}
        if self.ooo:
            types.add(TYPE_OUT_OF_OFFICE)
        if self.focus:
            types.add(TYPE_FOCUS_TIME)
        if self.workloc:
            types.add(TYPE_WORKING_LOCATION)
        return frozenset(types)

    def include_statuses(self) -> frozenset:
        """Accepted only, plus events that need no response when subscribed; empty means all"""
        if not self.accepted:
            return frozenset()
        if self.subscribed:
            return frozenset({STATUS_ACCEPTED, STATUS_NO_RESPONSE})
        return frozenset({STATUS_ACCEPTED})

    def calendar_names(self) -> List[str]:
        return [name.strip() for name in self.calendars.split(",") if name.strip()]

    def fetch_query(self, start: datetime, end: datetime, calendars: Mapping[str, str]) -> FetchQuery:
        """Build the query for [start, end), resolving calendar names against `calendars`"""
        calendar_ids = frozenset()
        names = self.calendar_names()
        if names:
            calendar_ids = frozenset(resolve_calendar_names(names, calendars))
            if not calendar_ids:
                raise ConfigError(
                    f"no matching calendars found for: {self.calendars}\n"
                    "Use 'daycal calendars' to see available calendars"
                )

        return FetchQuery(
            start=start,
            end=end,
            calendar_ids=calendar_ids,
            include_types=self.include_types(),
            include_statuses=self.include_statuses(),
            exclude_all_day=self.no_allday,
        )


SETTING_NAMES = tuple(f.name for f in fields(Settings))


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Read the config file, an empty dict when the default file doesn't exist"""
    explicit = path is not None
    path = path or CONFIG_DEFAULT_PATH
    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return {}

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config file {path}: expected a mapping at the top level")
    logger.debug("Using config file: %s", path)
    return data


def _coerce(name: str, value: Any) -> Any:
    """Check a config value against the type of its default"""
    default = getattr(Settings, name)
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"'{name}' must be true or false, got {value!r}")
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"'{name}' must be an integer, got {value!r}")
        return value
    if isinstance(value, list):
        # calendars may be written as a YAML list
        return ",".join(str(v) for v in value)
    return "" if value is None else str(value)


def _apply(settings: Settings, values: Mapping[str, Any], where: str) -> Settings:
    updates = {}
    for key, value in values.items():
        if key not in SETTING_NAMES:
            logger.warning("Ignoring unknown setting '%s' in %s", key, where)
            continue
        updates[key] = _coerce(key, value)
    return replace(settings, **updates)


def profiles(config: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    data = config.get("profiles") or {}
    if not isinstance(data, dict):
        raise ConfigError("'profiles' must be a mapping of profile name to settings")
    return data


def active_profile_name(config: Mapping[str, Any], requested: Optional[str] = None) -> str:
    """--profile, else $DAYCAL_PROFILE, else default_profile"""
    return requested or os.environ.get(PROFILE_ENV_VAR) or str(config.get("default_profile") or "")


def resolve_settings(config: Mapping[str, Any], profile: Optional[str] = None,
                     overrides: Optional[Mapping[str, Any]] = None) -> Settings:
    """Layer defaults, config, profile and explicit flag values into Settings"""
    top_level = {k: v for k, v in config.items() if k not in ("profiles", "default_profile")}
    settings = _apply(Settings(), top_level, "config")

    name = active_profile_name(config, profile)
    if name:
        available = profiles(config)
        if name not in available:
            raise ConfigError(f"Profile '{name}' not found in config")
        logger.debug("Using profile: %s", name)
        settings = _apply(settings, available[name] or {}, f"profile '{name}'")

    if overrides:
        # Only flags the user actually gave
        settings = _apply(settings, {k: v for k, v in overrides.items() if v is not None}, "command line")

    if settings.days < 1:
        raise ConfigError(f"'days' must be at least 1, got {settings.days}")
    return settings

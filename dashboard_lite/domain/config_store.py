"""JSON-backed dashboard configuration store with atomic writes.

Two flat files live in the data directory:

- ``config.json``: the DashboardConfig object (theme, refresh interval, agenda
  window, weather settings and any keys other widgets store there)
- ``calendars.json``: a JSON array of CalendarSource objects

Each write replaces one file atomically. Writes touching both files are not
transactional.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from dashboard_lite.calendar.lite_models import (
    DEFAULT_REFRESH_INTERVAL_MS,
    CalendarSource,
    DashboardConfig,
    WeatherLocation,
    WindowConfig,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
CALENDARS_FILENAME = "calendars.json"
AUTO_LOCATION = "auto"

# Only these CalendarSource fields may change after creation
EDITABLE_CALENDAR_FIELDS = frozenset({"enabled", "refresh_interval_ms"})


class ConfigStoreError(Exception):
    """Base exception for configuration store errors."""


class ConfigValidationError(ConfigStoreError):
    """Submitted or stored data failed validation."""

    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_validation_error(cls, prefix: str, exc: ValidationError) -> ConfigValidationError:
        details = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        summary = "; ".join(f"{d['loc']}: {d['msg']}" if d["loc"] else d["msg"] for d in details)
        return cls(f"{prefix}: {summary}", details)


class CalendarNotFoundError(ConfigStoreError):
    """No calendar source with the given id."""


class WeatherLocationNotFoundError(ConfigStoreError):
    """No weather location with the given id."""


def _epoch_millis_now() -> int:
    return time.time_ns() // 1_000_000


class DashboardConfigStore:
    """Persistent store for dashboard configuration and calendar sources.

    Ids for new calendars and weather locations are the creation time in epoch
    milliseconds, bumped by one until unique within their collection.
    """

    def __init__(self, data_dir: str | Path) -> None:
        """Create a store rooted at ``data_dir``, creating default files when missing.

        Args:
            data_dir: Directory holding config.json and calendars.json
        """
        self._data_dir = Path(data_dir)
        self._config_path = self._data_dir / CONFIG_FILENAME
        self._calendars_path = self._data_dir / CALENDARS_FILENAME
        self._lock = threading.RLock()

        self.ensure_files()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def ensure_files(self) -> None:
        """Create the data directory and default JSON files if they do not exist."""
        with self._lock:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            if not self._config_path.exists():
                self._write_json(self._config_path, DashboardConfig().to_json_dict())
                logger.info("Created default %s in %s", CONFIG_FILENAME, self._data_dir)
            if not self._calendars_path.exists():
                self._write_json(self._calendars_path, [])
                logger.info("Created empty %s in %s", CALENDARS_FILENAME, self._data_dir)

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    def _read_json(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read %s, using defaults: %s", path, exc)
            return default

    def _write_json(self, path: Path, data: Any) -> None:
        """Write JSON atomically: temp file in the same directory, then replace.

        Raises:
            OSError: If the file cannot be written
        """
        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=path.parent, delete=False, encoding="utf-8", suffix=".tmp"
            ) as tf:
                tmp_path = Path(tf.name)
                json.dump(data, tf, ensure_ascii=False, indent=2)
                tf.flush()
                with contextlib.suppress(OSError):
                    os.fsync(tf.fileno())
            tmp_path.replace(path)
        except OSError:
            logger.exception("Failed to persist %s", path)
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            raise

    @staticmethod
    def _unique_id(existing: set[str]) -> str:
        candidate = _epoch_millis_now()
        while str(candidate) in existing:
            candidate += 1
        return str(candidate)

    # ------------------------------------------------------------------
    # Calendar sources
    # ------------------------------------------------------------------

    def _load_calendars(self) -> list[CalendarSource]:
        raw = self._read_json(self._calendars_path, [])
        if not isinstance(raw, list):
            logger.warning("%s root is not an array; ignoring contents", self._calendars_path)
            return []

        sources: list[CalendarSource] = []
        for entry in raw:
            try:
                sources.append(CalendarSource.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping invalid calendar entry %r: %s", entry, exc)
        return sources

    def _save_calendars(self, sources: list[CalendarSource]) -> None:
        self._write_json(self._calendars_path, [s.to_json_dict() for s in sources])

    def get_calendar_sources(self) -> list[CalendarSource]:
        """Return all configured calendar sources, enabled or not."""
        with self._lock:
            return self._load_calendars()

    def list_calendars(self) -> list[CalendarSource]:
        return self.get_calendar_sources()

    def add_calendar(
        self,
        name: str,
        url: str,
        refresh_interval_ms: Optional[int] = None,
    ) -> CalendarSource:
        """Create and persist a new, enabled calendar source.

        Raises:
            ConfigValidationError: If name or url is missing or the interval is invalid
        """
        if not name or not url:
            raise ConfigValidationError("Missing required fields: name and url")

        with self._lock:
            sources = self._load_calendars()
            try:
                source = CalendarSource(
                    id=self._unique_id({s.id for s in sources}),
                    name=name,
                    url=url,
                    enabled=True,
                    refresh_interval_ms=(
                        DEFAULT_REFRESH_INTERVAL_MS if refresh_interval_ms is None else refresh_interval_ms
                    ),
                )
            except ValidationError as exc:
                raise ConfigValidationError.from_validation_error("Invalid calendar", exc) from exc

            sources.append(source)
            self._save_calendars(sources)

        logger.info("Added calendar %r (id=%s)", source.name, source.id)
        return source

    def update_calendar(self, calendar_id: str, changes: dict[str, Any]) -> CalendarSource:
        """Apply edits to an existing calendar source.

        Only ``enabled`` and ``refreshIntervalMs`` (or their snake_case names)
        may be changed; any other key is rejected.

        Raises:
            CalendarNotFoundError: Unknown id
            ConfigValidationError: Non-editable field or invalid value
        """
        by_alias = {f.alias or n: n for n, f in CalendarSource.model_fields.items()}
        normalized: dict[str, Any] = {}
        for key, value in changes.items():
            field_name = key if key in CalendarSource.model_fields else by_alias.get(key, key)
            if field_name not in EDITABLE_CALENDAR_FIELDS:
                raise ConfigValidationError(f"Field {key!r} cannot be changed")
            normalized[field_name] = value

        with self._lock:
            sources = self._load_calendars()
            for index, source in enumerate(sources):
                if source.id != calendar_id:
                    continue
                try:
                    updated = CalendarSource.model_validate({**source.model_dump(), **normalized})
                except ValidationError as exc:
                    raise ConfigValidationError.from_validation_error(
                        "Invalid calendar update", exc
                    ) from exc
                sources[index] = updated
                self._save_calendars(sources)
                logger.info("Updated calendar %s: %s", calendar_id, sorted(normalized))
                return updated

        raise CalendarNotFoundError(f"Calendar {calendar_id!r} not found")

    def delete_calendar(self, calendar_id: str) -> None:
        """Remove a calendar source.

        Raises:
            CalendarNotFoundError: Unknown id
        """
        with self._lock:
            sources = self._load_calendars()
            remaining = [s for s in sources if s.id != calendar_id]
            if len(remaining) == len(sources):
                raise CalendarNotFoundError(f"Calendar {calendar_id!r} not found")
            self._save_calendars(remaining)

        logger.info("Deleted calendar %s", calendar_id)

    # ------------------------------------------------------------------
    # Dashboard config
    # ------------------------------------------------------------------

    def _load_config_raw(self) -> dict[str, Any]:
        raw = self._read_json(self._config_path, {})
        if not isinstance(raw, dict):
            logger.warning("%s root is not an object; using defaults", self._config_path)
            return {}
        return raw

    def get_config(self) -> DashboardConfig:
        """Load and validate config.json.

        Raises:
            ConfigValidationError: If the stored config is invalid (e.g. negative window)
        """
        with self._lock:
            raw = self._load_config_raw()
        try:
            return DashboardConfig.model_validate(raw)
        except ValidationError as exc:
            raise ConfigValidationError.from_validation_error("Invalid config.json", exc) from exc

    def save_config(self, data: dict[str, Any]) -> DashboardConfig:
        """Validate and replace the whole dashboard config.

        Raises:
            ConfigValidationError: If ``data`` is not a valid DashboardConfig
        """
        if not isinstance(data, dict):
            raise ConfigValidationError("Config must be a JSON object")
        try:
            config = DashboardConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigValidationError.from_validation_error("Invalid config", exc) from exc

        with self._lock:
            self._write_json(self._config_path, config.to_json_dict())

        logger.info("Saved dashboard config")
        return config

    def get_window_config(self) -> WindowConfig:
        """Return the validated agenda window (pastWeeks/futureMonths)."""
        return self.get_config().calendar

    def get_refresh_interval_seconds(self) -> float:
        return self.get_config().refresh_interval / 1000.0

    # ------------------------------------------------------------------
    # Weather locations
    # ------------------------------------------------------------------

    def list_weather_locations(self) -> list[WeatherLocation]:
        return list(self.get_config().weather.locations)

    def add_weather_location(
        self,
        name: str,
        latitude: Any,
        longitude: Any,
        country: str = "",
        timezone: str = "",
    ) -> WeatherLocation:
        """Create and persist a weather location.

        Raises:
            ConfigValidationError: Missing name/latitude/longitude or out-of-range values
        """
        if not name or latitude in (None, "") or longitude in (None, ""):
            raise ConfigValidationError("Missing required fields: name, latitude, longitude")

        with self._lock:
            config = self.get_config()
            locations = config.weather.locations
            try:
                location = WeatherLocation(
                    id=self._unique_id({loc.id for loc in locations}),
                    name=name,
                    latitude=latitude,
                    longitude=longitude,
                    country=country or "",
                    timezone=timezone or "",
                )
            except ValidationError as exc:
                raise ConfigValidationError.from_validation_error(
                    "Invalid weather location", exc
                ) from exc

            locations.append(location)
            self._write_json(self._config_path, config.to_json_dict())

        logger.info("Added weather location %r (id=%s)", location.name, location.id)
        return location

    def delete_weather_location(self, location_id: str) -> None:
        """Remove a weather location; a default pointing at it falls back to "auto".

        Raises:
            WeatherLocationNotFoundError: Unknown id
        """
        with self._lock:
            config = self.get_config()
            weather = config.weather
            remaining = [loc for loc in weather.locations if loc.id != location_id]
            if len(remaining) == len(weather.locations):
                raise WeatherLocationNotFoundError(f"Weather location {location_id!r} not found")

            weather.locations = remaining
            if weather.default_location == location_id:
                weather.default_location = AUTO_LOCATION
            self._write_json(self._config_path, config.to_json_dict())

        logger.info("Deleted weather location %s", location_id)

    def set_default_weather_location(self, location_id: Optional[str]) -> str:
        """Set the default weather location; empty or None selects "auto".

        Returns:
            The stored default location id

        Raises:
            WeatherLocationNotFoundError: If the id is neither "auto" nor a saved location
        """
        target = location_id or AUTO_LOCATION

        with self._lock:
            config = self.get_config()
            weather = config.weather
            if target != AUTO_LOCATION and all(loc.id != target for loc in weather.locations):
                raise WeatherLocationNotFoundError(f"Weather location {target!r} not found")

            weather.default_location = target
            self._write_json(self._config_path, config.to_json_dict())

        logger.info("Default weather location set to %s", target)
        return target

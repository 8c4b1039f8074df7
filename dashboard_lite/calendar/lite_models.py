"""Data models for calendar aggregation - dashboard_lite version.

Event-side models (RawEvent, MergedEvent, DayBucket, AgendaSnapshot) are frozen:
a refresh cycle builds new instances and never mutates published ones.
Configuration models serialize to the camelCase JSON layout of the on-disk store.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_REFRESH_INTERVAL_MS = 300_000
DEFAULT_PAST_WEEKS = 2
DEFAULT_FUTURE_MONTHS = 3
UNTITLED_EVENT = "Untitled Event"


class _CamelModel(BaseModel):
    """Base model using camelCase aliases on the wire and snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        """Dump to a JSON-compatible dict using the camelCase aliases."""
        return self.model_dump(mode="json", by_alias=True)


class _FrozenCamelModel(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class CalendarSource(_CamelModel):
    """Configuration for one external ICS feed."""

    id: str = Field(..., description="Store-assigned identifier")
    name: str = Field(..., min_length=1, description="Human-readable calendar name")
    url: str = Field(..., min_length=1, description="ICS feed URL")
    enabled: bool = True
    refresh_interval_ms: int = Field(default=DEFAULT_REFRESH_INTERVAL_MS, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_interval_key(cls, data: Any) -> Any:
        # Older calendars.json files store the interval as "refreshInterval".
        if isinstance(data, dict) and "refreshInterval" in data and "refreshIntervalMs" not in data:
            data = dict(data)
            data["refreshIntervalMs"] = data.pop("refreshInterval")
        return data


class WindowConfig(_CamelModel):
    """Size of the agenda window around "now"."""

    past_weeks: int = Field(default=DEFAULT_PAST_WEEKS, ge=0)
    future_months: int = Field(default=DEFAULT_FUTURE_MONTHS, ge=0)


class WeatherLocation(_CamelModel):
    """A saved weather location."""

    id: str
    name: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    country: str = ""
    timezone: str = ""


class WeatherConfig(_CamelModel):
    """Weather widget configuration (persisted only, no forecast fetching)."""

    default_location: str = "auto"
    locations: list[WeatherLocation] = Field(default_factory=list)
    refresh_interval: int = Field(default=DEFAULT_REFRESH_INTERVAL_MS, gt=0)


class DashboardConfig(_CamelModel):
    """Top-level dashboard configuration stored in config.json.

    Unknown keys are preserved so other widgets can keep their settings here.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    theme: str = "light"
    refresh_interval: int = Field(
        default=DEFAULT_REFRESH_INTERVAL_MS, gt=0, description="Calendar refresh period in ms"
    )
    calendar: WindowConfig = Field(default_factory=WindowConfig)
    weather: WeatherConfig = Field(default_factory=WeatherConfig)


class EventWindow(_FrozenCamelModel):
    """Inclusive instant range used to filter parsed events."""

    start: AwareDatetime
    end: AwareDatetime

    def contains(self, instant: dt.datetime) -> bool:
        """Check whether an aware instant falls inside the window (inclusive)."""
        return self.start <= instant <= self.end


class RawEvent(_FrozenCamelModel):
    """One VEVENT as produced by the parser."""

    uid: str
    title: str = UNTITLED_EVENT
    start_time: AwareDatetime
    end_time: Optional[AwareDatetime] = None
    location: str = ""
    description: str = ""
    source_calendar_name: str
    all_day: bool = False


class MergedEvent(RawEvent):
    """A deduplicated event carrying every contributing source name."""

    calendar_sources: tuple[str, ...] = ()


class DayBucket(_FrozenCamelModel):
    """One local calendar day's worth of merged events."""

    date: dt.date
    events: tuple[MergedEvent, ...] = ()
    is_past: bool = False


class SourceFailure(_FrozenCamelModel):
    """A source whose fetch did not produce ICS text in a refresh cycle."""

    source_id: str
    source_name: str
    error: str
    status_code: Optional[int] = None


class AgendaSnapshot(_FrozenCamelModel):
    """Immutable result of one full refresh cycle."""

    generated_at: AwareDatetime
    window_start: AwareDatetime
    window_end: AwareDatetime
    buckets: dict[str, DayBucket] = Field(default_factory=dict)
    failures: tuple[SourceFailure, ...] = ()
    sources_total: int = 0
    sources_ok: int = 0
    event_count: int = 0
    parse_failures: int = 0

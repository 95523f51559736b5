"""Pydantic models for directory, schedule and building status data.

All data structures use Pydantic v2 for validation, serialization, and type safety.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator, model_validator

NormalizedStatus = Literal["yes", "maybe", "no"]
OutageType = Literal["emergency", "stabilization", "planned"]


class ScheduleRange(BaseModel):
    """Half-open ``[from, to)`` interval of a day in fractional hours.

    9.5 means 09:30. Serialized with the key ``from`` (by_alias=True).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_: float = Field(alias="from")
    to: float
    status: NormalizedStatus


# group id ("GPV1.2") -> day of week ("1" = Monday .. "7" = Sunday) -> ranges
WeeklySchedules = dict[str, dict[str, list[ScheduleRange]]]


class DirectorySnapshot(BaseModel):
    """Everything parsed out of one region's shutdowns page.

    Built in one go by the directory parser and replaced wholesale on refresh.
    """

    model_config = ConfigDict(frozen=True)

    token: str = Field(min_length=1)  # CSRF token from <meta name="csrf-token">
    update_fact: str = Field(min_length=1)  # DisconSchedule.fact.update, e.g. "11.12.2025 20:51"
    locations: list[str]
    streets_by_location: dict[str, list[str]]
    schedules: WeeklySchedules | None = None

    @model_validator(mode="after")
    def _locations_match_street_map(self) -> "DirectorySnapshot":
        if len(self.locations) != len(self.streets_by_location) or set(self.locations) != set(
            self.streets_by_location
        ):
            raise ValueError("locations must be exactly the keys of streets_by_location")
        return self


class RawBuildingStatus(BaseModel):
    """One building entry of the getHomeNum response, as DTEK sends it."""

    sub_type: str | None  # "Аварійні ремонтні роботи" | "Планові ремонтні роботи" | None
    start_date: str | None  # "00:40 13.12.2025"
    end_date: str | None  # "23:00 17.12.2025"
    type: str | None  # "1" = planned, "2" = emergency, None = no outage
    sub_type_reason: list[str] | None  # e.g. ["GPV1.2"]
    voluntarily: Any = None


class StatusResponse(BaseModel):
    """getHomeNum AJAX response: building number -> status."""

    result: StrictBool
    data: dict[str, RawBuildingStatus]

    @field_validator("data", mode="before")
    @classmethod
    def _empty_list_is_empty_map(cls, value: Any) -> Any:
        # PHP serializes an empty associative array as []
        if value == []:
            return {}
        return value


class OutageInfo(BaseModel):
    """Active outage window for a building."""

    model_config = ConfigDict(populate_by_name=True)

    type: OutageType
    from_: str = Field(alias="from")  # "HH:MM DD.MM.YYYY"
    to: str


class BuildingStatus(BaseModel):
    """Client-facing status of one building."""

    group: str | None = None  # schedule group, e.g. "GPV1.2"
    outage: OutageInfo | None = None


class StatusReport(BaseModel):
    """Answer to a (location, street) status query."""

    location: str
    street: str
    buildings: dict[str, BuildingStatus]
    schedules: WeeklySchedules = Field(default_factory=dict)
    fetched_at: datetime


class CachedRegion(BaseModel):
    """Precomputed region entry kept in the read-through store.

    Written by scripts/refresh_region_data.py, read by RegionStore.
    """

    region: str
    base_url: str
    csrf: str = Field(min_length=1)
    cookies: str  # "name=value; name2=value2"
    update_fact: str = Field(min_length=1)
    locations: list[str]
    streets_by_location: dict[str, list[str]]
    preset_data: dict[str, Any] | None = None  # raw DisconSchedule.preset["data"]
    extracted_at: datetime

"""Hourly outage grid -> compressed time ranges.

DisconSchedule.preset.data holds, per group and day of week, a grid keyed
"1".."24" where key k covers [k-1, k). Each cell is one of seven codes:

    yes / maybe / no        whole hour
    mfirst                  first 30 min maybe, second 30 min yes
    msecond                 first 30 min yes,   second 30 min maybe
    first                   first 30 min no,    second 30 min yes
    second                  first 30 min yes,   second 30 min no

Output ranges use fractional hours (9.5 == 09:30) and only the three
normalized statuses.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from src.dtek.models import NormalizedStatus, ScheduleRange, WeeklySchedules

KYIV = ZoneInfo("Europe/Kyiv")

HALF_HOUR_SPLITS: dict[str, tuple[NormalizedStatus, NormalizedStatus]] = {
    "mfirst": ("maybe", "yes"),
    "msecond": ("yes", "maybe"),
    "first": ("no", "yes"),
    "second": ("yes", "no"),
}

WHOLE_HOUR: dict[str, NormalizedStatus] = {
    "yes": "yes",
    "maybe": "maybe",
    "no": "no",
}


def normalize_status(code: str) -> NormalizedStatus:
    """Collapse a raw code to yes/maybe/no.

    Split codes normalize by their outage half (mfirst/msecond -> maybe,
    first/second -> no). Unknown codes count as "no".
    """
    if code in WHOLE_HOUR:
        return WHOLE_HOUR[code]
    if code in ("mfirst", "msecond"):
        return "maybe"
    return "no"


def _add_range(
    ranges: list[ScheduleRange], start: float, end: float, status: NormalizedStatus
) -> None:
    last = ranges[-1] if ranges else None
    if last is not None and last.to == start and last.status == status:
        ranges[-1] = last.model_copy(update={"to": end})
    else:
        ranges.append(ScheduleRange(from_=start, to=end, status=status))


def compress_day(day: Mapping[str, str]) -> list[ScheduleRange]:
    """Compress one day's hourly grid into merged ranges.

    Missing hours produce no range (a gap), they are not treated as "no".
    """
    ranges: list[ScheduleRange] = []
    for hour_key in range(1, 25):
        code = day.get(str(hour_key))
        if not code:
            continue

        start = float(hour_key - 1)
        if code in HALF_HOUR_SPLITS:
            first_half, second_half = HALF_HOUR_SPLITS[code]
            _add_range(ranges, start, start + 0.5, first_half)
            _add_range(ranges, start + 0.5, start + 1, second_half)
        else:
            _add_range(ranges, start, start + 1, normalize_status(code))
    return ranges


def compress_preset(data: Mapping[str, Mapping[str, Mapping[str, str]]]) -> WeeklySchedules:
    """Compress ``DisconSchedule.preset.data`` (group -> day -> hour grid)."""
    return {
        group_id: {day: compress_day(grid) for day, grid in week.items()}
        for group_id, week in data.items()
    }


def find_current_range(ranges: list[ScheduleRange], hour: float) -> ScheduleRange | None:
    """Range containing ``hour``, None if it falls in a gap."""
    for r in ranges:
        if r.from_ <= hour < r.to:
            return r
    return None


def format_hour(hour: float) -> str:
    """9.5 -> "09:30", 24 -> "24:00"."""
    whole = int(hour)
    minutes = round((hour - whole) * 60)
    return f"{whole:02d}:{minutes:02d}"


def kyiv_now() -> datetime:
    return datetime.now(KYIV)


def day_of_week(moment: datetime | None = None) -> str:
    """Day key as used by the schedule table: "1" is Monday, "7" is Sunday."""
    moment = moment or kyiv_now()
    return str(moment.isoweekday())


def hour_as_float(moment: datetime | None = None) -> float:
    moment = moment or kyiv_now()
    return moment.hour + moment.minute / 60


def schedules_from_preset_data(data: Any) -> WeeklySchedules | None:
    """Validate and compress a raw ``preset["data"]`` table.

    Returns None when there is no table at all.

    Raises:
        ValueError: If the table is present but not group -> day -> hour grid.
    """
    if data is None:
        return None
    if not isinstance(data, Mapping):
        raise ValueError("preset data must be an object")
    for week in data.values():
        if not isinstance(week, Mapping) or not all(isinstance(g, Mapping) for g in week.values()):
            raise ValueError("preset data must map group -> day -> hour grid")
    return compress_preset(data)

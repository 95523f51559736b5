"""Turn raw getHomeNum building entries into client-facing statuses."""

import re
from datetime import datetime

from src.dtek.models import BuildingStatus, OutageInfo, OutageType, RawBuildingStatus

_GROUP_PATTERN = re.compile(r"^GPV\d+\.\d+$")

# Known sub_type values:
#   "Аварійні ремонтні роботи"                                  -> emergency
#   "Стабілізаційне відключення (Згідно графіку погодинних ...)" -> stabilization
#   "Планові ремонтні роботи"                                   -> planned
_OUTAGE_MARKERS: tuple[tuple[str, OutageType], ...] = (
    ("Аварійн", "emergency"),
    ("Стабілізаційн", "stabilization"),
)

UPSTREAM_DATE_FORMAT = "%H:%M %d.%m.%Y"


def extract_schedule_group(sub_type_reason: list[str] | None) -> str | None:
    """First reason code shaped like a schedule group ("GPV1.2")."""
    for reason in sub_type_reason or ():
        if _GROUP_PATTERN.match(reason):
            return reason
    return None


def get_outage_type(sub_type: str | None) -> OutageType:
    """Classify an outage from its sub_type text.

    Unknown or missing text falls back to "planned", the least alarming class.
    """
    if sub_type:
        for marker, outage_type in _OUTAGE_MARKERS:
            if marker in sub_type:
                return outage_type
    return "planned"


def transform_building_status(raw: RawBuildingStatus) -> BuildingStatus:
    """Derive group and active outage for one building.

    An outage is reported only when DTEK gives a type and both dates.
    """
    outage = None
    if raw.type and raw.start_date and raw.end_date:
        outage = OutageInfo(type=get_outage_type(raw.sub_type), from_=raw.start_date, to=raw.end_date)
    return BuildingStatus(group=extract_schedule_group(raw.sub_type_reason), outage=outage)


def parse_upstream_date(value: str) -> datetime:
    """Parse DTEK's "HH:MM DD.MM.YYYY" (Kyiv local time, returned naive).

    Raises:
        ValueError: If the string is not in that format.
    """
    return datetime.strptime(value.strip(), UPSTREAM_DATE_FORMAT)


def is_outage_active(outage: OutageInfo, now: datetime) -> bool:
    """True if ``now`` (naive Kyiv time) falls inside the outage window.

    A window whose dates are not in the upstream format is never active.
    """
    try:
        start = parse_upstream_date(outage.from_)
        end = parse_upstream_date(outage.to)
    except ValueError:
        return False
    return start <= now <= end

"""Directory page parser - extracts the region directory from /ua/shutdowns.

Page structure (as served by DTEK, confirmed against kem/oem/dnem/dem):

  <head>
    <meta name="csrf-token" content="...">         anti-forgery token for /ua/ajax
  <body>
    <script>
      ...
      DisconSchedule.streets = {"м. Одеса": ["вул. ...", ...], ...};
      DisconSchedule.fact = {"data": {...}, "update": "11.12.2025 20:51", ...};
      DisconSchedule.preset = {"data": {"GPV1.1": {"1": {"1": "yes", ...}}}, ...};
      ...
    </script>

Single-city regions (kem) assign a flat array to DisconSchedule.streets.

When Incapsula decides we look like a bot, the page is replaced by a small
interstitial that loads /_Incapsula_Resource and has no csrf meta tag at all.
"""

from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup
from pydantic import ValidationError as PydanticValidationError

from src.dtek.errors import (
    LiteralEvaluationError,
    ParseError,
    RegionUnavailable,
    describe_exception,
)
from src.dtek.literal import evaluate_literal, find_assignments, property_key
from src.dtek.logging import get_logger
from src.dtek.models import DirectorySnapshot, WeeklySchedules
from src.dtek.regions import Region
from src.dtek.result import Err, Ok, Result, map_result
from src.dtek.schedule import schedules_from_preset_data
from src.dtek.sorting import natural_sort

log = get_logger(__name__)

SCHEDULE_OBJECT = "DisconSchedule"
SCHEDULE_NAMES = ("streets", "fact", "preset")

CSRF_SELECTOR = 'meta[name="csrf-token"]'

# Substrings only present on bot-protection interstitials (compared lowercased)
BOT_INTERSTITIAL_MARKERS: tuple[str, ...] = (
    "_incapsula_resource",
    "incapsula incident id",
    "/cdn-cgi/challenge-platform/",
)

# Street entries that are upstream placeholders, not streets
_PLACEHOLDER_STREETS = frozenset({"", "*"})

_SNIPPET_LIMIT = 500


def _snippet(text: str, limit: int = _SNIPPET_LIMIT) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


def is_bot_interstitial(html: str) -> bool:
    """True if the document is a bot-protection challenge page."""
    lowered = html.lower()
    return any(marker in lowered for marker in BOT_INTERSTITIAL_MARKERS)


def extract_csrf_token(soup: BeautifulSoup) -> str | None:
    meta = soup.select_one(CSRF_SELECTOR)
    if meta is None:
        return None
    content = meta.get("content")
    return content or None


def _inline_scripts(soup: BeautifulSoup) -> list[str]:
    return [script.string or "" for script in soup.find_all("script") if not script.get("src")]


def _find_schedule_nodes(scripts: list[str], names: tuple[str, ...]) -> dict[str, Any]:
    """Right-hand side nodes of ``DisconSchedule.<name> = ...`` across all scripts.

    Each script is parsed at most once, looking for every still-missing name.
    """
    found: dict[str, Any] = {}
    for code in scripts:
        if SCHEDULE_OBJECT not in code:
            continue
        pending = [name for name in names if name not in found]
        if not any(name in code for name in pending):
            continue
        for name, node in find_assignments(code, SCHEDULE_OBJECT, pending).items():
            found.setdefault(name, node)
        if len(found) == len(names):
            break
    return found


def _update_from_fact(fact_node: Any) -> str | None:
    """Evaluate only the ``update`` property of the fact object."""
    if getattr(fact_node, "type", None) != "ObjectExpression":
        return None
    for prop in fact_node.properties:
        if property_key(prop) == "update":
            value = evaluate_literal(prop.value)
            return value if isinstance(value, str) and value else None
    return None


def _normalize_streets(raw: Any, region: Region | None) -> dict[str, list[str]]:
    """Shape streets as location -> street list.

    Placeholders and entries that are not strings at all are dropped.

    Raises:
        ValueError: If the value is neither an object of lists nor a flat list.
    """
    if isinstance(raw, list):
        if region is None:
            raise ValueError("flat street list needs a region to name its city")
        raw = {region.default_city: raw}
    if not isinstance(raw, dict):
        raise ValueError(f"expected object or array, got {type(raw).__name__}")

    streets_by_location: dict[str, list[str]] = {}
    dropped = 0
    for location, streets in raw.items():
        if not isinstance(streets, list):
            raise ValueError(f"streets for {location!r} are not a list")
        kept = [
            street
            for street in streets
            if isinstance(street, str) and street.strip() not in _PLACEHOLDER_STREETS
        ]
        dropped += len(streets) - len(kept)
        streets_by_location[location] = kept
    if dropped:
        log.info(
            "street_entries_dropped",
            region=region.code if region else None,
            dropped=dropped,
        )
    return streets_by_location


def _preset_data(node: Any) -> Any:
    """Evaluated ``DisconSchedule.preset.data``, or None when there is no preset."""
    if node is None:
        log.warning("preset_not_found")
        return None
    preset = evaluate_literal(node)
    if not isinstance(preset, dict):
        raise ValueError("preset is not an object")
    return preset.get("data")


def extract_schedules(
    preset_node: Any,
) -> tuple[dict[str, Any] | None, WeeklySchedules | None]:
    """Raw preset grid and its compressed weekly ranges.

    Schedule data is supplementary: any failure is logged and yields
    ``(None, None)``.
    """
    try:
        data = _preset_data(preset_node)
        schedules = schedules_from_preset_data(data)
    except (LiteralEvaluationError, ValueError, TypeError) as e:
        log.warning("preset_extraction_failed", error=str(e), type=type(e).__name__)
        return None, None
    return (data if isinstance(data, dict) else None), schedules


@dataclass(frozen=True)
class DirectoryPage:
    """A parsed shutdowns page: the snapshot and the raw preset grid behind it."""

    snapshot: DirectorySnapshot
    preset_data: dict[str, Any] | None


def parse_page(
    html: str, region: Region | None = None
) -> Result[DirectoryPage, ParseError | RegionUnavailable]:
    """Parse a shutdowns page, keeping the raw preset grid alongside the snapshot.

    Args:
        html: Raw page body.
        region: Region the page belongs to; names the city for flat street
            lists and tags RegionUnavailable errors.

    Returns:
        Ok(DirectoryPage), Err(RegionUnavailable) for a bot interstitial,
        Err(ParseError) when the page shape is not what we expect.
    """
    region_code = region.code if region else None
    soup = BeautifulSoup(html, "lxml")

    token = extract_csrf_token(soup)
    if token is None:
        if is_bot_interstitial(html):
            log.warning("bot_interstitial_detected", region=region_code, length=len(html))
            return Err(
                RegionUnavailable(
                    message="DTEK served a bot-protection page instead of the directory",
                    region=region_code,
                )
            )
        return Err(
            ParseError(
                message="CSRF token meta tag not found in HTML",
                parse_kind="csrf",
                expected='<meta name="csrf-token" content="...">',
                found=_snippet(html),
            )
        )

    nodes = _find_schedule_nodes(_inline_scripts(soup), SCHEDULE_NAMES)

    if "streets" not in nodes:
        return Err(
            ParseError(
                message="DisconSchedule.streets assignment not found in HTML",
                parse_kind="discon_streets",
                expected="DisconSchedule.streets = {...}",
                found="No matching script block found",
            )
        )
    if "fact" not in nodes:
        return Err(
            ParseError(
                message="DisconSchedule.fact assignment not found in HTML",
                parse_kind="discon_fact",
                expected="DisconSchedule.fact = {...}",
                found="No matching script block found",
            )
        )

    try:
        update_fact = _update_from_fact(nodes["fact"])
    except LiteralEvaluationError as e:
        return Err(
            ParseError(
                message="DisconSchedule.fact.update is not a literal",
                parse_kind="discon_fact",
                expected='DisconSchedule.fact = { update: "..." }',
                cause=describe_exception(e),
            )
        )
    if update_fact is None:
        return Err(
            ParseError(
                message="update property not found in DisconSchedule.fact",
                parse_kind="discon_fact",
                expected='DisconSchedule.fact = { update: "..." }',
            )
        )

    try:
        streets_by_location = _normalize_streets(evaluate_literal(nodes["streets"]), region)
    except (LiteralEvaluationError, ValueError) as e:
        return Err(
            ParseError(
                message="DisconSchedule.streets is not a location -> streets literal",
                parse_kind="discon_streets",
                expected="DisconSchedule.streets = {location: [street, ...]}",
                found=str(e),
                cause=describe_exception(e),
            )
        )

    preset_data, schedules = extract_schedules(nodes.get("preset"))

    try:
        snapshot = DirectorySnapshot(
            token=token,
            update_fact=update_fact,
            locations=natural_sort(streets_by_location),
            streets_by_location=streets_by_location,
            schedules=schedules,
        )
    except PydanticValidationError as e:
        return Err(
            ParseError(
                message="Extracted directory failed validation",
                parse_kind="template",
                expected="DirectorySnapshot",
                found=_snippet(str(e)),
            )
        )

    log.info(
        "directory_parsed",
        region=region_code,
        locations=len(snapshot.locations),
        update_fact=snapshot.update_fact,
        schedule_groups=len(schedules) if schedules else 0,
    )
    return Ok(DirectoryPage(snapshot=snapshot, preset_data=preset_data))


def parse_directory_page(
    html: str, region: Region | None = None
) -> Result[DirectorySnapshot, ParseError | RegionUnavailable]:
    """Parse a shutdowns page into a DirectorySnapshot.

    See parse_page for the arguments and error cases.
    """
    return map_result(parse_page(html, region), lambda page: page.snapshot)

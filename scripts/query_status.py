"""Get the outage status of every building on a street as JSON or table.

Standalone CLI around DtekService. Uses REDIS_URL for session data when set,
otherwise scrapes DTEK directly. Calls are retried with RETRY_DELAYS.

Run with: python scripts/query_status.py --location "м. Одеса" --street "вул. Дерибасівська"
Table:    python scripts/query_status.py --region oem --location ... --street ... --table
Lists:    python scripts/query_status.py --region oem --list-locations
          python scripts/query_status.py --region oem --list-streets "м. Одеса"

Exit codes:
  0 = success (JSON or table on stdout)
  1 = error (message on stderr)
"""

import argparse
import asyncio
import json
import os
import sys
from datetime import datetime

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.dtek.config import get_config  # noqa: E402
from src.dtek.errors import error_to_user_message, unwrap_retry_error  # noqa: E402
from src.dtek.logging import setup_logging  # noqa: E402
from src.dtek.models import OutageInfo, StatusReport  # noqa: E402
from src.dtek.regions import DEFAULT_REGION, REGIONS  # noqa: E402
from src.dtek.result import Err  # noqa: E402
from src.dtek.retry import with_retry  # noqa: E402
from src.dtek.schedule import (  # noqa: E402
    day_of_week,
    find_current_range,
    format_hour,
    hour_as_float,
    kyiv_now,
)
from src.dtek.service import create_registry  # noqa: E402
from src.dtek.transform import is_outage_active  # noqa: E402

_STATUS_LABELS = {"yes": "power on", "no": "power off", "maybe": "possible outage"}


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for JSON."""
    print(msg, file=sys.stderr)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Get DTEK building outage status as JSON or table.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--region",
        choices=sorted(REGIONS),
        default=DEFAULT_REGION,
        help=f"Region code (default: {DEFAULT_REGION}).",
    )
    parser.add_argument("--location", type=str, help="City or village name.")
    parser.add_argument("--street", type=str, help="Street name as listed by DTEK.")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--table",
        action="store_true",
        help="Output a human-readable table instead of JSON.",
    )
    mode.add_argument(
        "--list-locations",
        action="store_true",
        help="Print the region's locations as JSON.",
    )
    mode.add_argument(
        "--list-streets",
        type=str,
        metavar="LOCATION",
        default=None,
        help="Print the streets of LOCATION as JSON.",
    )

    args = parser.parse_args()
    if not (args.list_locations or args.list_streets) and not (args.location and args.street):
        parser.error("--location and --street are required unless listing")
    return args


def _current_status(report: StatusReport, group: str | None) -> str:
    """Human label for a group's range at the current Kyiv time."""
    if not group or group not in report.schedules:
        return "-"
    now = kyiv_now()
    ranges = report.schedules[group].get(day_of_week(now), [])
    current = find_current_range(ranges, hour_as_float(now))
    if current is None:
        return "-"
    label = _STATUS_LABELS.get(current.status, current.status)
    return f"{label} until {format_hour(current.to)}"


def _outage_cell(outage: OutageInfo, now: datetime) -> str:
    cell = f"{outage.type}: {outage.from_} - {outage.to}"
    return f"{cell} (now)" if is_outage_active(outage, now) else cell


def _format_table(report: StatusReport) -> str:
    """Columns: Building | Group | Now | Outage"""
    if not report.buildings:
        return "(no buildings found)"

    now = kyiv_now().replace(tzinfo=None)

    headers = ["Building", "Group", "Now", "Outage"]
    rows = []
    for number, status in report.buildings.items():
        outage = status.outage
        rows.append(
            [
                number,
                status.group or "-",
                _current_status(report, status.group),
                _outage_cell(outage, now) if outage else "-",
            ]
        )

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [" | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in rows]
    return "\n".join([header_line, separator, *row_lines])


def _on_retry(attempt: int, error, delay: float) -> None:
    _log(f"  Attempt {attempt} failed, retrying in {delay:g}s...")


async def main(args: argparse.Namespace) -> int:
    config = get_config()
    registry = create_registry(config)
    try:
        service_result = registry.get(args.region)
        if isinstance(service_result, Err):
            _log(f"ERROR: {service_result.error.message}")
            return 1
        service = service_result.value

        if args.list_locations:
            operation = service.get_locations
        elif args.list_streets:
            operation = lambda: service.get_streets(args.list_streets)  # noqa: E731
        else:
            operation = lambda: service.get_status(args.location, args.street)  # noqa: E731

        result = await with_retry(operation, delays=config.retry_delays, on_retry=_on_retry)
        if isinstance(result, Err):
            error = unwrap_retry_error(result.error)
            _log(f"ERROR: {error_to_user_message(error)} ({error.message})")
            return 1

        value = result.value
        if isinstance(value, StatusReport):
            if args.table:
                print(_format_table(value))
            else:
                print(value.model_dump_json(by_alias=True, indent=2))
        else:
            print(json.dumps(value, ensure_ascii=False, indent=2))
        return 0
    finally:
        await registry.aclose()


if __name__ == "__main__":
    _config = get_config()
    setup_logging(json_output=_config.log_json, log_level=_config.log_level)
    sys.exit(asyncio.run(main(_parse_args())))

"""Extract DTEK directory data with a real browser and store it in Redis.

Services configured with REDIS_URL build their sessions from these entries
instead of scraping DTEK themselves. Run from a scheduled job.

Run with: python scripts/refresh_region_data.py
Debug:    python scripts/refresh_region_data.py --headed
Single:   python scripts/refresh_region_data.py --region kem
Dump:     python scripts/refresh_region_data.py --output artifacts/extracted-data.json

Exit codes:
  0 = every requested region was written
  1 = configuration error or at least one region failed (details on stderr)
"""

import argparse
import asyncio
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from playwright.async_api import BrowserContext, async_playwright
from tenacity import retry, stop_after_attempt, wait_fixed

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.dtek.config import get_config  # noqa: E402
from src.dtek.cookies import CookieJar  # noqa: E402
from src.dtek.kv import RegionStore  # noqa: E402
from src.dtek.logging import get_logger, setup_logging  # noqa: E402
from src.dtek.models import CachedRegion  # noqa: E402
from src.dtek.pages.directory import parse_page  # noqa: E402
from src.dtek.regions import REGIONS, Region, get_region  # noqa: E402
from src.dtek.result import Err  # noqa: E402
from src.dtek.utils import RawHtmlCapture, configure_page_for_scraping  # noqa: E402

log = get_logger("refresh_region_data")


class ExtractionFailed(Exception):
    """A region page loaded but could not be turned into a CachedRegion."""


def _log(msg: str) -> None:
    """Write progress messages to stderr."""
    print(msg, file=sys.stderr)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Extract DTEK directory data with Playwright and store it in Redis.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch browser in headed mode (visible window).",
    )
    parser.add_argument(
        "--region",
        choices=sorted(REGIONS),
        default=None,
        help="Refresh a single region (default: all regions).",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Also write the extracted entries to this JSON file.",
    )
    return parser.parse_args()


@retry(stop=stop_after_attempt(3), wait=wait_fixed(2), reraise=True)
async def extract_region(context: BrowserContext, region: Region) -> CachedRegion:
    """Load one region's shutdowns page and build its cache entry.

    Raises:
        ExtractionFailed: If the raw HTML is missing or does not parse.
    """
    page = await context.new_page()
    capture = RawHtmlCapture()
    try:
        await configure_page_for_scraping(page, read_only=True)
        await capture.attach(page)
        await page.goto(region.template_url, wait_until="networkidle", timeout=15000)
        await capture.detach(page)

        if not capture.html:
            raise ExtractionFailed(f"{region.code}: raw HTML was not captured")

        parsed = parse_page(capture.html, region)
        if isinstance(parsed, Err):
            log.warning("region_parse_failed", region=region.code, error_code=parsed.error.code)
            raise ExtractionFailed(f"{region.code}: {parsed.error.message}")
        snapshot = parsed.value.snapshot

        browser_cookies = await context.cookies(region.url)
        jar = CookieJar()
        jar.absorb(f"{c['name']}={c['value']}" for c in browser_cookies)

        return CachedRegion(
            region=region.code,
            base_url=region.url,
            csrf=snapshot.token,
            cookies=jar.header(),
            update_fact=snapshot.update_fact,
            locations=snapshot.locations,
            streets_by_location=snapshot.streets_by_location,
            preset_data=parsed.value.preset_data,
            extracted_at=datetime.now(timezone.utc),
        )
    finally:
        await page.close()


async def main(args: argparse.Namespace) -> int:
    config = get_config()
    if not config.redis_url:
        _log("ERROR: REDIS_URL is required")
        return 1
    try:
        store = RegionStore.from_url(config.redis_url)
    except ValueError as e:
        _log(f"ERROR: {e}")
        return 1

    regions = [get_region(args.region)] if args.region else list(REGIONS.values())
    _log(f"refresh_region_data: {'headed' if args.headed else 'headless'}")
    _log(f"  Regions: {', '.join(r.code for r in regions)}")

    extracted: dict[str, dict] = {}
    failed: list[str] = []

    try:
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(headless=not args.headed)
            context = await browser.new_context(user_agent=config.user_agent)
            try:
                for region in regions:
                    _log(f"  {region.code.upper()}...")
                    try:
                        data = await extract_region(context, region)
                    except Exception as e:
                        log.error("region_refresh_failed", region=region.code, error=str(e))
                        _log(f"    FAILED: {e}")
                        failed.append(region.code)
                        continue

                    await store.put_region(data, config.kv_cache_ttl_seconds)
                    extracted[region.code] = data.model_dump(mode="json")
                    _log(
                        f"    OK: {len(data.locations)} locations, updated {data.update_fact}"
                    )
            finally:
                await browser.close()
    finally:
        await store.aclose()

    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(
            json.dumps(
                {
                    "extracted_at": datetime.now(timezone.utc).isoformat(),
                    "regions": extracted,
                },
                ensure_ascii=False,
                indent=2,
            ),
            encoding="utf-8",
        )
        _log(f"  Saved extracted data to {output}")

    if failed:
        _log(f"  Failed regions: {', '.join(failed)}")
        return 1
    _log("  Done")
    return 0


if __name__ == "__main__":
    _config = get_config()
    setup_logging(json_output=_config.log_json, log_level=_config.log_level)
    sys.exit(asyncio.run(main(_parse_args())))

"""DtekService facade - the public read API for one region.

Each operation returns ``Ok(value)`` or ``Err(DtekError)`` and never raises.

* get_locations / get_streets / get_schedules  answered from the session's
  DirectorySnapshot
* get_status  authenticated POST to DTEK, cached per (location, street)

Sessions come from the live shutdowns page, or from the read-through Redis
store when one is configured.
"""

import time
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from cachetools import TTLCache

from src.dtek.client import UpstreamClient
from src.dtek.config import DtekConfig, get_config
from src.dtek.cookies import CookieJar
from src.dtek.errors import (
    AUTH_FAILURE_STATUSES,
    DtekError,
    NetworkError,
    SessionError,
    ValidationError,
    format_error_for_log,
)
from src.dtek.kv import RegionStore
from src.dtek.logging import get_logger
from src.dtek.models import DirectorySnapshot, StatusReport, WeeklySchedules
from src.dtek.pages.directory import parse_directory_page
from src.dtek.regions import REGIONS, Region, get_region
from src.dtek.result import Err, Ok, Result
from src.dtek.schedule import schedules_from_preset_data
from src.dtek.session import SessionManager
from src.dtek.sorting import natural_sort, natural_sort_keys
from src.dtek.transform import transform_building_status

log = get_logger(__name__)


def _filter_schedules(schedules: WeeklySchedules | None, group_ids: Iterable[str]) -> WeeklySchedules:
    """Requested groups only, in fresh containers so callers cannot edit the snapshot."""
    if not schedules:
        return {}
    return {
        group_id: {day: list(ranges) for day, ranges in schedules[group_id].items()}
        for group_id in group_ids
        if group_id in schedules
    }


class DtekService:
    """Region-scoped facade with its own session and status cache.

    Args:
        region: Region served by this instance.
        client: Upstream client (defaults to one built for ``region``).
        store: Optional read-through store; when set, sessions are built from it.
        config: Configuration (defaults to the process-wide singleton).
        clock: Monotonic time source shared by the session and the cache.
    """

    def __init__(
        self,
        region: Region,
        *,
        client: UpstreamClient | None = None,
        store: RegionStore | None = None,
        config: DtekConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.region = region
        self.config = config or get_config()
        self.client = client or UpstreamClient(region, config=self.config)
        self.store = store
        self.sessions = SessionManager(
            self._load_session,
            ttl_seconds=self.config.session_ttl_seconds,
            clock=clock,
            label=region.code,
        )
        self._status_cache: TTLCache[tuple[str, str], StatusReport] = TTLCache(
            maxsize=self.config.status_cache_max_entries,
            ttl=self.config.status_cache_ttl_seconds,
            timer=clock,
        )
        log.info(
            "service_created",
            region=region.code,
            source="kv" if store is not None else "live",
        )

    # ------------------------------------------------------------------
    # Session sources
    # ------------------------------------------------------------------

    async def _load_session(self) -> Result[tuple[DirectorySnapshot, CookieJar], DtekError]:
        if self.store is not None:
            return await self._load_from_store()
        return await self._load_from_upstream()

    async def _load_from_upstream(self) -> Result[tuple[DirectorySnapshot, CookieJar], DtekError]:
        page = await self.client.fetch_directory_page()
        if isinstance(page, Err):
            return page
        parsed = parse_directory_page(page.value.html, self.region)
        if isinstance(parsed, Err):
            return parsed
        return Ok((parsed.value, page.value.cookies))

    async def _load_from_store(self) -> Result[tuple[DirectorySnapshot, CookieJar], DtekError]:
        cached = await self.store.get_region(self.region.code)
        if isinstance(cached, Err):
            return cached
        entry = cached.value

        try:
            schedules = schedules_from_preset_data(entry.preset_data)
        except (ValueError, TypeError) as e:
            log.warning("kv_preset_unusable", region=self.region.code, error=str(e))
            schedules = None

        snapshot = DirectorySnapshot(
            token=entry.csrf,
            update_fact=entry.update_fact,
            locations=natural_sort(entry.streets_by_location),
            streets_by_location=entry.streets_by_location,
            schedules=schedules,
        )
        return Ok((snapshot, CookieJar.from_header(entry.cookies)))

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def get_locations(self) -> Result[list[str], DtekError]:
        """All locations (cities/villages) of the region, naturally sorted."""
        session = await self.sessions.current()
        if isinstance(session, Err):
            return session
        return Ok(list(session.value.snapshot.locations))

    async def get_streets(self, location: str) -> Result[list[str], DtekError]:
        """Streets of one location, naturally sorted; unknown location gives []."""
        session = await self.sessions.current()
        if isinstance(session, Err):
            return session
        streets = session.value.snapshot.streets_by_location.get(location, [])
        return Ok(natural_sort(streets))

    async def get_schedules(self, group_ids: Iterable[str]) -> Result[WeeklySchedules, DtekError]:
        """Weekly compressed schedules for the requested groups only.

        Days are keyed "1" (Monday) to "7" (Sunday). Unknown groups are omitted.
        """
        session = await self.sessions.current()
        if isinstance(session, Err):
            return session
        return Ok(_filter_schedules(session.value.snapshot.schedules, group_ids))

    async def get_status(self, location: str, street: str) -> Result[StatusReport, DtekError]:
        """Building statuses for a street, with the schedules of their groups.

        Answers are cached per (location, street) for status_cache_ttl_seconds.
        A 401/403/419 from DTEK drops the session that request used so the
        next call starts over.
        """
        for field, value in (("location", location), ("street", street)):
            if not value or not value.strip():
                return Err(
                    ValidationError(
                        message=f"Parameter {field} is required",
                        field=field,
                        constraint="non_empty",
                        provided_value=value,
                    )
                )

        cache_key = (location, street)
        cached = self._status_cache.get(cache_key)
        if cached is not None:
            log.debug("status_cache_hit", region=self.region.code, location=location, street=street)
            return Ok(cached)

        log.info("status_cache_miss", region=self.region.code, location=location, street=street)

        session_result = await self.sessions.current()
        if isinstance(session_result, Err):
            return session_result
        session = session_result.value
        snapshot = session.snapshot

        fetched = await self.client.fetch_building_statuses(
            location=location,
            street=street,
            update_fact=snapshot.update_fact,
            token=snapshot.token,
            cookies=session.cookies,
        )
        if isinstance(fetched, Err):
            error = fetched.error
            log.error(
                "status_fetch_failed",
                region=self.region.code,
                location=location,
                street=street,
                **format_error_for_log(error),
            )
            if isinstance(error, NetworkError) and error.http_status in AUTH_FAILURE_STATUSES:
                self.sessions.clear_session(session)
                return Err(
                    SessionError(
                        message="DTEK rejected the session credentials",
                        reason="auth_failed",
                        http_status=error.http_status,
                    )
                )
            return fetched

        buildings = {
            number: transform_building_status(raw)
            for number, raw in natural_sort_keys(fetched.value.data).items()
        }
        groups = {status.group for status in buildings.values() if status.group}
        report = StatusReport(
            location=location,
            street=street,
            buildings=buildings,
            schedules=_filter_schedules(snapshot.schedules, sorted(groups)),
            fetched_at=datetime.now(timezone.utc),
        )
        self._status_cache[cache_key] = report

        log.info(
            "status_fetched",
            region=self.region.code,
            location=location,
            street=street,
            buildings=len(buildings),
            groups=len(groups),
        )
        return Ok(report)

    def stats(self) -> dict[str, Any]:
        """Diagnostics: cache and session state."""
        session = self.sessions.session
        return {
            "region": self.region.code,
            "status_cache_size": len(self._status_cache),
            "session_loaded": session is not None,
            "session_refreshing": self.sessions.refreshing,
            "update_fact": session.snapshot.update_fact if session else None,
        }


class ServiceRegistry:
    """One DtekService per region, created on first use and kept for the process lifetime.

    Args:
        config: Configuration shared by all services.
        store: Read-through store handed to every service (None = live scraping).
        service_factory: Builds a service for a region; override in tests.
    """

    def __init__(
        self,
        config: DtekConfig | None = None,
        *,
        store: RegionStore | None = None,
        service_factory: Callable[[Region], DtekService] | None = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self._factory = service_factory or (
            lambda region: DtekService(region, store=self.store, config=self.config)
        )
        self._services: dict[str, DtekService] = {}

    def get(self, region_code: str) -> Result[DtekService, ValidationError]:
        service = self._services.get(region_code)
        if service is not None:
            return Ok(service)

        region = get_region(region_code)
        if region is None:
            return Err(
                ValidationError(
                    message=f"Unknown region {region_code!r}",
                    field="region",
                    constraint=f"one of {sorted(REGIONS)}",
                    provided_value=region_code,
                )
            )
        service = self._factory(region)
        self._services[region_code] = service
        return Ok(service)

    def stats(self) -> list[dict[str, Any]]:
        return [service.stats() for service in self._services.values()]

    async def aclose(self) -> None:
        if self.store is not None:
            await self.store.aclose()


def create_registry(config: DtekConfig | None = None) -> ServiceRegistry:
    """Composition root: wire the Redis store in when REDIS_URL is set."""
    config = config or get_config()
    store = RegionStore.from_url(config.redis_url) if config.redis_url else None
    return ServiceRegistry(config, store=store)

"""Tests for SessionManager: TTL, single-flight refresh, invalidation."""

import asyncio

import pytest

from src.dtek.cookies import CookieJar
from src.dtek.errors import NetworkError, SessionError
from src.dtek.models import DirectorySnapshot
from src.dtek.result import Err, Ok
from src.dtek.session import SessionManager


def _snapshot(token: str = "tok") -> DirectorySnapshot:
    return DirectorySnapshot(
        token=token,
        update_fact="11.12.2025 20:51",
        locations=["м. Одеса"],
        streets_by_location={"м. Одеса": ["вул. Педагогічна"]},
    )


class CountingLoader:
    """Session loader that records calls and can be made slow or failing."""

    def __init__(self, delay: float = 0.0) -> None:
        self.calls = 0
        self.delay = delay
        self.fail_with = None
        self.raise_with: Exception | None = None

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raise_with is not None:
            raise self.raise_with
        if self.fail_with is not None:
            return Err(self.fail_with)
        return Ok((_snapshot(f"tok-{self.calls}"), CookieJar.from_header("dtek-oem=s")))


class TestLifetime:
    @pytest.mark.asyncio
    async def test_loads_once_and_reuses(self, clock):
        loader = CountingLoader()
        manager = SessionManager(loader, ttl_seconds=60, clock=clock)

        first = await manager.current()
        second = await manager.current()

        assert isinstance(first, Ok)
        assert first.value is second.value
        assert loader.calls == 1

    @pytest.mark.asyncio
    async def test_expired_session_is_rebuilt(self, clock):
        loader = CountingLoader()
        manager = SessionManager(loader, ttl_seconds=60, clock=clock)

        await manager.current()
        clock.advance(59)
        assert manager.is_session_valid()
        clock.advance(1)
        assert not manager.is_session_valid()

        result = await manager.current()
        assert result.value.snapshot.token == "tok-2"
        assert loader.calls == 2

    @pytest.mark.asyncio
    async def test_clear_forces_rebuild(self, clock):
        loader = CountingLoader()
        manager = SessionManager(loader, ttl_seconds=60, clock=clock)

        await manager.current()
        manager.clear_session()
        assert manager.session is None

        await manager.current()
        assert loader.calls == 2

    def test_clear_without_session_is_harmless(self, clock):
        manager = SessionManager(CountingLoader(), clock=clock)
        manager.clear_session()
        assert manager.session is None

    @pytest.mark.asyncio
    async def test_clearing_a_replaced_session_keeps_the_newer_one(self, clock):
        loader = CountingLoader()
        manager = SessionManager(loader, ttl_seconds=60, clock=clock)

        stale = (await manager.current()).value
        manager.clear_session()
        newer = (await manager.current()).value

        manager.clear_session(stale)
        assert manager.session is newer

        manager.clear_session(newer)
        assert manager.session is None
        assert loader.calls == 2


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self, clock):
        loader = CountingLoader(delay=0.01)
        manager = SessionManager(loader, ttl_seconds=60, clock=clock)

        results = await asyncio.gather(*(manager.current() for _ in range(20)))

        assert loader.calls == 1
        assert all(r.value is results[0].value for r in results)
        assert not manager.refreshing

    @pytest.mark.asyncio
    async def test_failure_is_shared_and_not_cached(self, clock):
        loader = CountingLoader(delay=0.01)
        loader.fail_with = NetworkError(message="down", url="https://x", http_status=503)
        manager = SessionManager(loader, ttl_seconds=60, clock=clock)

        results = await asyncio.gather(*(manager.current() for _ in range(5)))
        assert loader.calls == 1
        assert all(isinstance(r, Err) and r.error.http_status == 503 for r in results)
        assert manager.session is None
        assert not manager.refreshing

        loader.fail_with = None
        assert isinstance(await manager.current(), Ok)
        assert loader.calls == 2

    @pytest.mark.asyncio
    async def test_loader_exception_becomes_session_error(self, clock):
        loader = CountingLoader()
        loader.raise_with = RuntimeError("boom")
        manager = SessionManager(loader, clock=clock)

        result = await manager.current()

        assert isinstance(result.error, SessionError)
        assert result.error.reason == "refresh_failed"
        assert "boom" in result.error.cause
        assert not manager.refreshing

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_refresh(self, clock):
        loader = CountingLoader(delay=0.05)
        manager = SessionManager(loader, ttl_seconds=60, clock=clock)

        impatient = asyncio.ensure_future(manager.current())
        patient = asyncio.ensure_future(manager.current())
        await asyncio.sleep(0.01)
        impatient.cancel()

        result = await patient
        assert isinstance(result, Ok)
        assert loader.calls == 1
        assert manager.session is not None

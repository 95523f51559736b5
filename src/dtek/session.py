"""Session lifetime management for one DTEK region.

A session is the parsed directory plus the cookies and CSRF token that came
with it. SessionManager keeps at most one valid session, rebuilds it when it
expires or is invalidated, and guarantees that concurrent callers share a
single rebuild instead of each scraping the page.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from src.dtek.cookies import CookieJar
from src.dtek.errors import DtekError, SessionError, describe_exception, format_error_for_log
from src.dtek.logging import get_logger
from src.dtek.models import DirectorySnapshot
from src.dtek.result import Err, Ok, Result

logger = get_logger(__name__)


@dataclass
class Session:
    snapshot: DirectorySnapshot
    cookies: CookieJar
    expires_at: float  # monotonic clock seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


SessionLoader = Callable[[], Awaitable[Result[tuple[DirectorySnapshot, CookieJar], DtekError]]]


class SessionManager:
    """Owns the current session and its single in-flight refresh.

    Args:
        loader: Coroutine function producing a fresh (snapshot, cookies) pair.
        ttl_seconds: Lifetime of a freshly loaded session.
        clock: Monotonic time source, injectable for tests.
        label: Context for log lines (the region code).
    """

    def __init__(
        self,
        loader: SessionLoader,
        *,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
        label: str = "",
    ) -> None:
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._label = label
        self._session: Session | None = None
        self._refresh_task: asyncio.Task[Result[Session, DtekError]] | None = None

        logger.debug("session_manager_initialized", region=label, ttl_seconds=ttl_seconds)

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None

    def is_session_valid(self) -> bool:
        """True if a session exists and has not expired."""
        if self._session is None:
            logger.debug("session_check", region=self._label, result="missing")
            return False
        if self._session.is_expired(self._clock()):
            logger.info("session_check", region=self._label, result="expired")
            return False
        return True

    async def current(self) -> Result[Session, DtekError]:
        """Return a valid session, refreshing it if needed.

        Concurrent callers during a refresh await the same task. The shared
        task is shielded so a caller that gets cancelled does not cancel the
        refresh for everybody else.
        """
        if self.is_session_valid():
            return Ok(self._session)

        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(self._refresh())
            self._refresh_task = task
        else:
            logger.debug("session_refresh_joined", region=self._label)
        return await asyncio.shield(task)

    async def _refresh(self) -> Result[Session, DtekError]:
        logger.info("session_refresh_started", region=self._label)
        started = self._clock()
        try:
            try:
                loaded = await self._loader()
            except Exception as e:
                logger.exception("session_loader_crashed", region=self._label)
                loaded = Err(
                    SessionError(
                        message="Session refresh raised an unexpected error",
                        reason="refresh_failed",
                        cause=describe_exception(e),
                    )
                )
            if isinstance(loaded, Err):
                self._session = None
                logger.error(
                    "session_refresh_failed",
                    region=self._label,
                    **format_error_for_log(loaded.error),
                )
                return loaded

            snapshot, cookies = loaded.value
            self._session = Session(
                snapshot=snapshot,
                cookies=cookies,
                expires_at=self._clock() + self.ttl_seconds,
            )
            logger.info(
                "session_refreshed",
                region=self._label,
                locations=len(snapshot.locations),
                cookies=len(cookies),
                update_fact=snapshot.update_fact,
                elapsed_seconds=round(self._clock() - started, 3),
            )
            return Ok(self._session)
        finally:
            self._refresh_task = None

    def clear_session(self, expected: Session | None = None) -> None:
        """Drop the current session so the next call rebuilds it.

        With ``expected``, only that session is dropped: one that has already
        been replaced by a newer refresh stays.
        """
        if expected is not None and self._session is not expected:
            logger.debug("session_clear_skipped", region=self._label, reason="replaced")
            return
        if self._session is not None:
            self._session = None
            logger.info("session_cleared", region=self._label)
        else:
            logger.debug("session_clear_skipped", region=self._label, reason="no_session")

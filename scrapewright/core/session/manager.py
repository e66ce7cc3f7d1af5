"""Session pool: acquisition, health checks, navigation and teardown.

Sessions live in an arena keyed by session id. A separate ordered idle set
tracks which of them can be handed out. A semaphore bounds the number of busy
sessions. Nothing outside this class touches pool state.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import logfire

from scrapewright.config import EngineConfig
from scrapewright.core.session.driver import BrowserDriver, DriverSession, create_driver
from scrapewright.exceptions import DriverUnavailable, PoolExhausted, RetriesExhausted, ScrapeError
from scrapewright.models import NavigationOutcome, NavigationStep
from scrapewright.retry import run_with_retry


@dataclass
class Session:
    """One live driver session and its pool bookkeeping.

    Attributes:
        session_id: Opaque token issued by the driver
        handle: Driver session used to issue commands
        current_url: Last URL navigated to
        busy: Whether a request currently owns the session
        broken: Set when a fatal driver error was seen; release tears it down
        created_at: Monotonic creation time
        last_activity: Monotonic time of the last command or release

    """

    session_id: str
    handle: DriverSession
    current_url: str | None = None
    busy: bool = False
    broken: bool = False
    created_at: float = field(default_factory=time.monotonic)
    last_activity: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_activity = time.monotonic()


class SessionManager:
    """Owns every browser session of the process.

    Attributes:
        config: Engine configuration
        driver: Browser driver capability
        logger: Logger instance

    """

    def __init__(self, config: EngineConfig, driver: BrowserDriver | None = None):
        """Initialize the manager.

        Args:
            config: Engine configuration
            driver: Driver capability. Defaults to the one built from config.

        """
        self.config = config
        self.driver = driver or create_driver(config)
        self.logger = logging.getLogger(__name__)
        self._sessions: dict[str, Session] = {}
        self._idle: OrderedDict[str, None] = OrderedDict()
        self._slots = asyncio.Semaphore(config.max_sessions)
        self._busy = 0
        self._reaper: asyncio.Task | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    async def acquire(self) -> Session:
        """Hand out an idle session or open a new one.

        Returns:
            A Session marked busy. The caller must pass it to ``release``.

        Raises:
            PoolExhausted: If no slot frees within ``acquire_timeout``.
            DriverUnavailable: If a new session cannot be opened.

        """
        if self._closed:
            raise DriverUnavailable(
                self.config.driver_endpoint, 'session manager is closed', fatal=False, transient=False
            )

        started = time.monotonic()
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self.config.acquire_timeout)
        except TimeoutError:
            waited = time.monotonic() - started
            self.logger.warning(f'Session pool exhausted after {waited:.2f}s (capacity={self.config.max_sessions})')
            raise PoolExhausted(self.config.max_sessions, waited) from None

        try:
            await self.sweep_idle()
            session = await self._reuse_idle() or await self._open()
        except BaseException:
            self._slots.release()
            raise

        session.busy = True
        session.touch()
        self._busy += 1
        logfire.debug('Session acquired', session_id=session.session_id, busy=self._busy)
        return session

    async def _reuse_idle(self) -> Session | None:
        # Most recently released first, their connections are the freshest
        while self._idle:
            session_id, _ = self._idle.popitem(last=True)
            session = self._sessions[session_id]
            try:
                await session.handle.ping(self.config.health_check_timeout)
            except ScrapeError as e:
                self.logger.info(f'Session {session_id} failed health check ({e}), tearing down')
                await self._teardown(session)
                continue
            except BaseException:
                # Cancelled mid-check: hand the session back so sweeps and close still see it
                self._idle[session_id] = None
                raise
            return session
        return None

    async def _open(self) -> Session:
        try:
            handle = await run_with_retry(self.driver.open_session, self.config.connect_retry, name='open_session')
        except RetriesExhausted as e:
            reason = str(e.last_error)
            raise DriverUnavailable(self.config.driver_endpoint, reason, fatal=False) from e

        session = Session(session_id=handle.session_id, handle=handle)
        self._sessions[session.session_id] = session
        self.logger.info(f'Opened session {session.session_id} ({len(self._sessions)} live)')
        return session

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    async def release(self, session: Session) -> None:
        """Return a session to the pool, or tear it down if it is broken.

        Pool bookkeeping happens before any await, so a cancellation during
        teardown cannot leak the slot.

        Args:
            session: Session returned by ``acquire``

        """
        if not session.busy:
            self.logger.warning(f'Session {session.session_id} released twice, ignoring')
            return

        session.busy = False
        session.touch()
        self._busy -= 1
        self._slots.release()

        if session.broken or self._closed:
            self._sessions.pop(session.session_id, None)
            await self._close_handle(session)
        else:
            self._idle[session.session_id] = None
        logfire.debug('Session released', session_id=session.session_id, broken=session.broken, busy=self._busy)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Session]:
        """Scoped acquisition: release always runs, including on cancellation."""
        session = await self.acquire()
        try:
            yield session
        finally:
            await self.release(session)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def navigate(
        self,
        session: Session,
        url: str,
        steps: Sequence[NavigationStep] = (),
        *,
        wait_for: str | None = None,
    ) -> NavigationOutcome:
        """Load ``url``, run ``steps`` in order and wait for the page to settle.

        Args:
            session: Busy session owned by the caller
            url: Page to load
            steps: Interactions to run after the load
            wait_for: Element that must be present before returning

        Returns:
            NavigationOutcome with the rendered content.

        Raises:
            StepTimeout: If the load, a step or the stability wait times out.
            NavigationFailed: If the page errors out.
            DriverUnavailable: If the driver died. The session is marked broken.

        """
        if not session.busy:
            raise RuntimeError(f'Session {session.session_id} is not acquired')

        handle = session.handle
        started = time.monotonic()

        with logfire.span('navigate', url=url, session_id=session.session_id, steps=len(steps)):
            try:
                status_code = await handle.goto(url, self.config.navigation_timeout)
                session.current_url = handle.current_url
                session.touch()

                for index, step in enumerate(steps):
                    await self._run_step(handle, index, step)
                    session.touch()

                await handle.wait_until_stable(self.config.stability_state, self.config.step_timeout)
                if wait_for:
                    await handle.wait_for(wait_for, self.config.step_timeout)

                html = await handle.content()
            except DriverUnavailable as e:
                if e.fatal:
                    session.broken = True
                raise
            finally:
                session.touch()

            session.current_url = handle.current_url
            elapsed = time.monotonic() - started
            self.logger.debug(f'Navigated {session.session_id} to {session.current_url} in {elapsed:.2f}s')
            return NavigationOutcome(
                url=url,
                final_url=session.current_url,
                html=html,
                status_code=status_code,
                elapsed=elapsed,
            )

    async def _run_step(self, handle: DriverSession, index: int, step: NavigationStep) -> None:
        timeout = step.timeout or self.config.step_timeout

        if step.action == 'click':
            assert step.selector is not None
            await handle.click(step.selector, timeout, step=index)
        elif step.action == 'wait_for':
            assert step.selector is not None
            await handle.wait_for(step.selector, timeout, step=index)
        elif step.action == 'fill':
            assert step.selector is not None and step.value is not None
            await handle.fill(step.selector, step.value, timeout, step=index)
        elif step.action == 'scroll':
            await handle.scroll(step.selector, step.duration, timeout, step=index)
        elif step.action == 'pause':
            await asyncio.sleep(step.duration or 0)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def sweep_idle(self) -> int:
        """Tear down idle sessions older than ``idle_ttl``. Busy sessions are never touched.

        Returns:
            Number of sessions torn down.

        """
        now = time.monotonic()
        expired = [
            self._sessions[sid]
            for sid in self._idle
            if now - self._sessions[sid].last_activity >= self.config.idle_ttl
        ]
        evicted = 0
        for session in expired:
            # Another task may have taken it out of the idle set while we awaited
            if session.busy or session.session_id not in self._idle:
                continue
            del self._idle[session.session_id]
            await self._teardown(session)
            evicted += 1
        if evicted:
            self.logger.info(f'Evicted {evicted} idle session(s)')
        return evicted

    def start_reaper(self, interval: float | None = None) -> asyncio.Task:
        """Start a background task that sweeps idle sessions periodically."""
        if self._reaper is None or self._reaper.done():
            self._reaper = asyncio.create_task(self._reap(interval or self.config.reaper_interval))
        return self._reaper

    async def _reap(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep_idle()
            except ScrapeError as e:
                self.logger.warning(f'Idle sweep failed: {e}')

    async def close(self) -> None:
        """Stop the reaper, tear down every session not currently owned and disconnect the driver.

        Busy sessions are torn down when their owners release them.
        """
        self._closed = True
        if self._reaper is not None:
            self._reaper.cancel()
            try:
                await self._reaper
            except asyncio.CancelledError:
                pass
            self._reaper = None

        self._idle.clear()
        for session in [s for s in self._sessions.values() if not s.busy]:
            await self._teardown(session)

        await self.driver.close()

    def stats(self) -> dict[str, int]:
        """Snapshot of the pool for health reporting."""
        return {
            'capacity': self.config.max_sessions,
            'live': len(self._sessions),
            'busy': self._busy,
            'idle': len(self._idle),
        }

    async def _teardown(self, session: Session) -> None:
        self._sessions.pop(session.session_id, None)
        await self._close_handle(session)

    async def _close_handle(self, session: Session) -> None:
        try:
            await session.handle.close()
        except ScrapeError as e:
            self.logger.debug(f'Ignoring error while closing session {session.session_id}: {e}')
        self.logger.debug(f'Closed session {session.session_id}')

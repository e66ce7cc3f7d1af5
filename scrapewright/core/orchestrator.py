"""Scrape orchestration: one request in, one result or one classified error out.

Each request walks a fixed state machine:

    pending -> acquiring_session -> navigating -> extracting -> releasing -> succeeded | failed

Acquisition and navigation run under their own retry policies. A transient
missing field sends the request back to navigation, bounded by a separate
request-level budget. A wall-clock timeout spans every state.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import logfire

from scrapewright.config import EngineConfig
from scrapewright.core.extraction import CompiledRule, ExtractionPipeline
from scrapewright.core.session import Session, SessionManager
from scrapewright.exceptions import (
    Cancelled,
    InternalError,
    MissingField,
    RetriesExhausted,
    ScrapeError,
    ScrapeTimeout,
)
from scrapewright.models import NavigationOutcome, ScrapeMetadata, ScrapeRequest, ScrapeResult, ScrapeState
from scrapewright.retry import RetryContext, run_with_retry

StateCallback = Callable[[ScrapeState], None]


@dataclass
class _Lease:
    """The session currently held by a request, if any."""

    session: Session | None = None


class ScrapeOrchestrator:
    """Composes the session manager, retry engine and extraction pipeline.

    Attributes:
        manager: Session pool owner
        config: Engine configuration
        pipeline: Extraction pipeline
        logger: Logger instance

    """

    def __init__(
        self,
        manager: SessionManager,
        config: EngineConfig | None = None,
        pipeline: ExtractionPipeline | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            manager: Session manager that owns the browser sessions
            config: Engine configuration. Defaults to the manager's.
            pipeline: Extraction pipeline. Defaults to a silent one.

        """
        self.manager = manager
        self.config = config or manager.config
        self.pipeline = pipeline or ExtractionPipeline()
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: EngineConfig) -> 'ScrapeOrchestrator':
        """Build an orchestrator with a Playwright-backed session manager."""
        return cls(SessionManager(config), config)

    async def scrape(self, request: ScrapeRequest, *, on_state: StateCallback | None = None) -> ScrapeResult:
        """Run one scrape request to a terminal outcome.

        Args:
            request: The request to run
            on_state: Called with every state the request enters

        Returns:
            ScrapeResult on success.

        Raises:
            ScrapeError: Exactly one classified error on failure.
            asyncio.CancelledError: If the caller cancelled the request. The session is released first.

        """
        started = time.monotonic()
        timeout = request.timeout or self.config.request_timeout

        def enter(state: ScrapeState) -> None:
            self.logger.debug(f'{request.url}: {state.value}')
            if on_state:
                on_state(state)

        with logfire.span('scrape', url=request.url, rules=len(request.rules), timeout=timeout):
            enter(ScrapeState.PENDING)
            failure: ScrapeError
            try:
                compiled = self.pipeline.compile(request.rules)
                async with asyncio.timeout(timeout):
                    result = await self._run(request, compiled, enter, started)
            except TimeoutError:
                failure = ScrapeTimeout(timeout)
            except asyncio.CancelledError:
                task = asyncio.current_task()
                if task is not None and task.cancelling():
                    # Requested by the caller's own scope: the lease is already released, let it propagate
                    enter(ScrapeState.FAILED)
                    logfire.warn('Scrape cancelled', url=request.url, elapsed=round(time.monotonic() - started, 3))
                    raise
                failure = Cancelled(f'Request for {request.url} was cancelled')
            except ScrapeError as e:
                failure = e
            except Exception as e:
                logfire.exception('Unexpected error during scrape', url=request.url)
                failure = InternalError(e)
            else:
                enter(ScrapeState.SUCCEEDED)
                logfire.info(
                    'Scrape succeeded',
                    url=request.url,
                    attempts=result.metadata.attempts,
                    elapsed=round(result.metadata.elapsed, 3),
                )
                return result

            enter(ScrapeState.FAILED)
            logfire.error(
                'Scrape failed',
                url=request.url,
                code=failure.code,
                transient=failure.transient,
                error=str(failure),
                elapsed=round(time.monotonic() - started, 3),
            )
            if isinstance(failure, InternalError):
                raise failure from failure.error
            raise failure

    async def _run(
        self,
        request: ScrapeRequest,
        compiled: list[CompiledRule],
        enter: StateCallback,
        started: float,
    ) -> ScrapeResult:
        lease = _Lease()
        acquire_ctx = RetryContext(policy=self.config.acquire_retry)

        try:
            enter(ScrapeState.ACQUIRING_SESSION)
            lease.session = await run_with_retry(
                self.manager.acquire, self.config.acquire_retry, context=acquire_ctx, name='acquire'
            )
            return await self._navigate_and_extract(request, compiled, lease, enter, started, acquire_ctx.attempts)
        finally:
            enter(ScrapeState.RELEASING)
            if lease.session is not None:
                await self.manager.release(lease.session)
                lease.session = None

    async def _navigate_and_extract(
        self,
        request: ScrapeRequest,
        compiled: list[CompiledRule],
        lease: _Lease,
        enter: StateCallback,
        started: float,
        acquire_attempts: int,
    ) -> ScrapeResult:
        base_policy = self.config.navigation_retry
        navigation_attempts = 0
        remaining = base_policy.max_attempts
        last_missing: MissingField | None = None

        for attempt in range(1, self.config.request_attempts + 1):
            if self.config.reset_navigation_budget:
                policy = base_policy
            else:
                if remaining < 1:
                    assert last_missing is not None
                    raise RetriesExhausted(attempt - 1, last_missing)
                policy = base_policy.model_copy(update={'max_attempts': remaining})

            enter(ScrapeState.NAVIGATING)
            nav_ctx = RetryContext(policy=policy)
            try:
                outcome = await run_with_retry(
                    lambda: self._navigate_once(request, lease), policy, context=nav_ctx, name='navigate'
                )
            finally:
                navigation_attempts += nav_ctx.attempts
                remaining -= nav_ctx.attempts

            enter(ScrapeState.EXTRACTING)
            with logfire.span('extract', url=request.url, attempt=attempt):
                try:
                    data = self.pipeline.extract(outcome.html, compiled)
                except MissingField as e:
                    if not e.transient:
                        raise
                    last_missing = e
                    logfire.warn(
                        'Field missing, re-navigating',
                        url=request.url,
                        field_name=e.field_name,
                        attempt=attempt,
                        max_attempts=self.config.request_attempts,
                    )
                    continue

            assert lease.session is not None
            return ScrapeResult(
                data=data,
                metadata=ScrapeMetadata(
                    url=request.url,
                    session_id=lease.session.session_id,
                    elapsed=time.monotonic() - started,
                    attempts=attempt,
                    navigation_attempts=navigation_attempts,
                    acquire_attempts=acquire_attempts,
                ),
            )

        assert last_missing is not None
        raise RetriesExhausted(self.config.request_attempts, last_missing)

    async def _navigate_once(self, request: ScrapeRequest, lease: _Lease) -> NavigationOutcome:
        if lease.session is None or lease.session.broken:
            # The driver died under us: swap in a fresh session before retrying
            if lease.session is not None:
                broken, lease.session = lease.session, None
                await self.manager.release(broken)
            lease.session = await self.manager.acquire()
        return await self.manager.navigate(lease.session, request.url, request.steps, wait_for=request.wait_for)

    async def probe(self, url: str = 'https://example.com') -> dict[str, str | float]:
        """Load a page and return its title. Used to check the driver end to end.

        Args:
            url: Page to load

        Returns:
            Dict with 'url', 'title', 'session_id' and 'elapsed'.

        Raises:
            ScrapeError: If the driver cannot load the page.

        """
        started = time.monotonic()
        try:
            async with asyncio.timeout(self.config.request_timeout):
                async with self.manager.session() as session:

                    async def load() -> str:
                        await self.manager.navigate(session, url)
                        return await session.handle.title()

                    title = await run_with_retry(load, self.config.navigation_retry, name='probe')
        except TimeoutError:
            raise ScrapeTimeout(self.config.request_timeout) from None
        except ScrapeError:
            raise
        except Exception as e:
            raise InternalError(e) from e

        return {
            'url': url,
            'title': title,
            'session_id': session.session_id,
            'elapsed': round(time.monotonic() - started, 3),
        }

    async def close(self) -> None:
        """Shut down the session pool and driver."""
        await self.manager.close()

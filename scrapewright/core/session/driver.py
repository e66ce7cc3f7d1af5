"""Browser driver capability and its Playwright implementation.

Nothing outside this module talks to Playwright. Driver-level errors are
translated here into the scrapewright error taxonomy.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import TypeVar

from scrapewright.config import EngineConfig
from scrapewright.exceptions import DriverUnavailable, InvalidRequest, NavigationFailed, StepTimeout

T = TypeVar('T')

logger = logging.getLogger(__name__)

# Chrome flags used when the browser runs inside a container or a function sandbox
CHROME_ARGS = (
    '--disable-dev-tools',
    '--disable-dev-shm-usage',
    '--disable-gpu',
    '--no-sandbox',
    '--no-zygote',
    '--single-process',
)

_FATAL_MARKERS = (
    'target closed',
    'has been closed',
    'browser closed',
    'connection closed',
    'browser has disconnected',
)
_SELECTOR_MARKERS = (
    'unexpected token',
    'is not a valid selector',
    'unknown engine',
)


class DriverSession(ABC):
    """One tab/context inside the driver process.

    All timeouts are in seconds. ``step`` labels errors with the index of the
    navigation step being executed (None for the initial load).
    """

    session_id: str

    @property
    @abstractmethod
    def current_url(self) -> str:
        """URL the session is currently on."""

    @abstractmethod
    async def goto(self, url: str, timeout: float) -> int | None:
        """Load ``url`` and return the main document status code, if known."""

    @abstractmethod
    async def click(self, selector: str, timeout: float, step: int | None = None) -> None:
        """Click the first element matching ``selector``."""

    @abstractmethod
    async def wait_for(self, selector: str, timeout: float, step: int | None = None) -> None:
        """Wait until ``selector`` matches an element."""

    @abstractmethod
    async def fill(self, selector: str, value: str, timeout: float, step: int | None = None) -> None:
        """Type ``value`` into the element matching ``selector``."""

    @abstractmethod
    async def scroll(self, selector: str | None, amount: float | None, timeout: float, step: int | None = None) -> None:
        """Scroll an element into view, or the page by ``amount`` pixels (bottom when None)."""

    @abstractmethod
    async def wait_until_stable(self, state: str, timeout: float) -> None:
        """Wait for the given load state (e.g. 'networkidle')."""

    @abstractmethod
    async def content(self) -> str:
        """Return the rendered HTML."""

    @abstractmethod
    async def title(self) -> str:
        """Return the document title."""

    @abstractmethod
    async def ping(self, timeout: float) -> None:
        """Cheap liveness check. Raises DriverUnavailable when unresponsive."""

    @abstractmethod
    async def close(self) -> None:
        """Tear the session down."""


class BrowserDriver(ABC):
    """Capability for opening sessions on a browser driver process."""

    @abstractmethod
    async def open_session(self) -> DriverSession:
        """Open a new session. Raises DriverUnavailable if the driver cannot be reached."""

    @abstractmethod
    async def close(self) -> None:
        """Disconnect from (or shut down) the driver process."""


def translate_error(
    error: Exception, *, url: str, action: str, timeout: float, step: int | None, endpoint: str | None = None
) -> Exception:
    """Map a Playwright error onto the scrapewright taxonomy.

    Args:
        error: Error raised by Playwright
        url: URL the session was working on
        action: Name of the operation ('goto', 'click', ...)
        timeout: Timeout that applied, in seconds
        step: Navigation step index, if any
        endpoint: Driver endpoint for DriverUnavailable

    Returns:
        The translated exception (not raised).

    """
    from playwright.async_api import TimeoutError as PlaywrightTimeoutError

    if isinstance(error, PlaywrightTimeoutError):
        return StepTimeout(step, action, timeout)

    message = str(error)
    lowered = message.lower()
    if any(marker in lowered for marker in _FATAL_MARKERS):
        return DriverUnavailable(endpoint, message.splitlines()[0] if message else 'driver closed', fatal=True)
    if any(marker in lowered for marker in _SELECTOR_MARKERS):
        where = f'step {step}' if step is not None else action
        return InvalidRequest(f'Invalid selector in {where}: {message.splitlines()[0]}')
    return NavigationFailed(url, message.splitlines()[0] if message else type(error).__name__, step_index=step)


class PlaywrightSession(DriverSession):
    """DriverSession backed by one Playwright browser context and page."""

    def __init__(self, context, page, endpoint: str | None = None):
        """Initialize with an open context and page.

        Args:
            context: playwright BrowserContext owning the page
            page: playwright Page
            endpoint: Driver endpoint, for error messages

        """
        self.session_id = uuid.uuid4().hex
        self._context = context
        self._page = page
        self._endpoint = endpoint

    @property
    def current_url(self) -> str:
        return self._page.url

    async def _call(self, awaitable: Awaitable[T], *, action: str, timeout: float, step: int | None) -> T:
        from playwright.async_api import Error as PlaywrightError

        try:
            return await awaitable
        except PlaywrightError as e:
            raise translate_error(
                e, url=self.current_url, action=action, timeout=timeout, step=step, endpoint=self._endpoint
            ) from e

    async def goto(self, url: str, timeout: float) -> int | None:
        from playwright.async_api import Error as PlaywrightError

        try:
            response = await self._page.goto(url, timeout=timeout * 1000)
        except PlaywrightError as e:
            raise translate_error(e, url=url, action='goto', timeout=timeout, step=None, endpoint=self._endpoint) from e
        return response.status if response else None

    async def click(self, selector: str, timeout: float, step: int | None = None) -> None:
        await self._call(self._page.click(selector, timeout=timeout * 1000), action='click', timeout=timeout, step=step)

    async def wait_for(self, selector: str, timeout: float, step: int | None = None) -> None:
        await self._call(
            self._page.wait_for_selector(selector, timeout=timeout * 1000),
            action='wait_for',
            timeout=timeout,
            step=step,
        )

    async def fill(self, selector: str, value: str, timeout: float, step: int | None = None) -> None:
        await self._call(
            self._page.fill(selector, value, timeout=timeout * 1000), action='fill', timeout=timeout, step=step
        )

    async def scroll(self, selector: str | None, amount: float | None, timeout: float, step: int | None = None) -> None:
        if selector:
            locator = self._page.locator(selector).first
            await self._call(
                locator.scroll_into_view_if_needed(timeout=timeout * 1000), action='scroll', timeout=timeout, step=step
            )
        elif amount is None:
            await self._call(
                self._page.evaluate('window.scrollTo(0, document.body.scrollHeight)'),
                action='scroll',
                timeout=timeout,
                step=step,
            )
        else:
            await self._call(self._page.mouse.wheel(0, amount), action='scroll', timeout=timeout, step=step)

    async def wait_until_stable(self, state: str, timeout: float) -> None:
        await self._call(
            self._page.wait_for_load_state(state, timeout=timeout * 1000), action=state, timeout=timeout, step=None
        )

    async def content(self) -> str:
        return await self._call(self._page.content(), action='content', timeout=0.0, step=None)

    async def title(self) -> str:
        return await self._call(self._page.title(), action='title', timeout=0.0, step=None)

    async def ping(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(
                self._call(self._page.evaluate('1'), action='ping', timeout=timeout, step=None), timeout
            )
        except TimeoutError as e:
            raise DriverUnavailable(self._endpoint, f'session unresponsive after {timeout:.2f}s') from e
        except (StepTimeout, NavigationFailed) as e:
            raise DriverUnavailable(self._endpoint, str(e)) from e

    async def close(self) -> None:
        from playwright.async_api import Error as PlaywrightError

        try:
            await self._context.close()
        except PlaywrightError as e:
            # Context is already gone with the browser
            logger.debug(f'Ignoring error while closing session {self.session_id}: {e}')


class PlaywrightDriver(BrowserDriver):
    """Playwright-based driver using a real browser.

    Connects over CDP to ``driver_endpoint`` when one is configured, otherwise
    launches a local Chromium. Each session gets its own browser context.
    """

    def __init__(self, endpoint: str | None = None, headless: bool = True, args: tuple[str, ...] = CHROME_ARGS):
        """Initialize Playwright driver.

        Args:
            endpoint: CDP endpoint of an already running browser
            headless: Run the launched browser headless
            args: Chromium command line flags for a launched browser

        """
        self.endpoint = endpoint
        self.headless = headless
        self.args = args
        self._playwright = None
        self._browser = None
        self._lock = asyncio.Lock()

    async def _ensure_browser(self):
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser

            try:
                from playwright.async_api import Error as PlaywrightError
                from playwright.async_api import async_playwright
            except ImportError as err:
                raise ImportError(
                    'Playwright not installed. Install with: pip install playwright && playwright install chromium'
                ) from err

            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                if self.endpoint:
                    self._browser = await self._playwright.chromium.connect_over_cdp(self.endpoint)
                else:
                    self._browser = await self._playwright.chromium.launch(headless=self.headless, args=list(self.args))
            except PlaywrightError as e:
                self._browser = None
                raise DriverUnavailable(self.endpoint, str(e).splitlines()[0], fatal=False) from e
            except OSError as e:
                self._browser = None
                raise DriverUnavailable(self.endpoint, str(e), fatal=False) from e

            logger.info(f'Connected to browser ({self.endpoint or "local chromium"})')
            return self._browser

    async def open_session(self) -> DriverSession:
        from playwright.async_api import Error as PlaywrightError

        browser = await self._ensure_browser()
        try:
            context = await browser.new_context(ignore_https_errors=True)
        except PlaywrightError as e:
            raise DriverUnavailable(self.endpoint, str(e).splitlines()[0], fatal=False) from e

        try:
            page = await context.new_page()
        except BaseException as e:
            # The context is ours until a session owns it
            try:
                await context.close()
            except PlaywrightError as close_error:
                logger.debug(f'Ignoring error while closing half-open context: {close_error}')
            if isinstance(e, PlaywrightError):
                raise DriverUnavailable(self.endpoint, str(e).splitlines()[0], fatal=False) from e
            raise
        return PlaywrightSession(context, page, endpoint=self.endpoint)

    async def close(self) -> None:
        from playwright.async_api import Error as PlaywrightError

        async with self._lock:
            try:
                if self._browser is not None:
                    await self._browser.close()
            except PlaywrightError as e:
                logger.debug(f'Ignoring error while closing browser: {e}')
            finally:
                self._browser = None
                if self._playwright is not None:
                    await self._playwright.stop()
                    self._playwright = None


def create_driver(config: EngineConfig) -> BrowserDriver:
    """Create the browser driver described by ``config``.

    Args:
        config: Engine configuration

    Returns:
        BrowserDriver instance

    """
    return PlaywrightDriver(endpoint=config.driver_endpoint, headless=config.headless)

import asyncio
import re

import pytest

from scrapewright.config import EngineConfig
from scrapewright.core import BrowserDriver, DriverSession, ScrapeOrchestrator, SessionManager
from scrapewright.exceptions import DriverUnavailable, StepTimeout
from scrapewright.models import RetryPolicy

NO_WAIT = RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=0.0)


class FakeSession(DriverSession):
    """In-memory DriverSession that serves HTML scripted on its driver."""

    def __init__(self, driver: 'FakeDriver', session_id: str):
        self.driver = driver
        self.session_id = session_id
        self.alive = True
        self._url = 'about:blank'

    @property
    def current_url(self) -> str:
        return self._url

    async def goto(self, url, timeout):
        self.driver.goto_calls += 1
        if self.driver.goto_delay:
            await asyncio.sleep(self.driver.goto_delay)
        if self.driver.goto_errors:
            raise self.driver.goto_errors.pop(0)
        self._url = url
        return 200

    def _run_step(self, action, timeout, step):
        if self.driver.step_timeouts.get(step, 0) > 0:
            self.driver.step_timeouts[step] -= 1
            raise StepTimeout(step, action, timeout)

    async def click(self, selector, timeout, step=None):
        self._run_step('click', timeout, step)
        self.driver.actions.append(('click', selector, step))

    async def wait_for(self, selector, timeout, step=None):
        self._run_step('wait_for', timeout, step)
        self.driver.actions.append(('wait_for', selector, step))

    async def fill(self, selector, value, timeout, step=None):
        self._run_step('fill', timeout, step)
        self.driver.actions.append(('fill', selector, value, step))

    async def scroll(self, selector, amount, timeout, step=None):
        self.driver.actions.append(('scroll', selector, amount, step))

    async def wait_until_stable(self, state, timeout):
        self.driver.actions.append(('stable', state))

    async def content(self):
        # Serve pages in order, repeating the last one once the script runs out
        if len(self.driver.pages) > 1:
            return self.driver.pages.pop(0)
        return self.driver.pages[0]

    async def title(self):
        match = re.search(r'<title>(.*?)</title>', self.driver.pages[0], re.S)
        return match.group(1).strip() if match else ''

    async def ping(self, timeout):
        self.driver.pings += 1
        if not self.alive:
            raise DriverUnavailable(None, 'session is gone', fatal=True)

    async def close(self):
        self.alive = False
        self.driver.closed.append(self.session_id)


class FakeDriver(BrowserDriver):
    """BrowserDriver double with counters and failure injection.

    Attributes:
        pages: HTML served by successive ``content`` calls
        goto_errors: Exceptions raised by successive ``goto`` calls before loads succeed
        open_errors: Exceptions raised by successive ``open_session`` calls
        goto_delay: Seconds every ``goto`` sleeps
        step_timeouts: Step index to how many of its click, wait_for or fill calls time out

    """

    def __init__(self, pages=None):
        self.pages = list(pages or ['<html><head><title>Example Domain</title></head><body></body></html>'])
        self.goto_errors: list[BaseException] = []
        self.open_errors: list[Exception] = []
        self.goto_delay = 0.0
        self.step_timeouts: dict[int, int] = {}
        self.goto_calls = 0
        self.pings = 0
        self.actions: list[tuple] = []
        self.opened: list[FakeSession] = []
        self.closed: list[str] = []
        self.driver_closed = False

    async def open_session(self):
        if self.open_errors:
            raise self.open_errors.pop(0)
        session = FakeSession(self, f'fake-{len(self.opened) + 1}')
        self.opened.append(session)
        return session

    async def close(self):
        self.driver_closed = True


@pytest.fixture
def fake_driver():
    return FakeDriver()


@pytest.fixture
def engine_config():
    return EngineConfig(
        max_sessions=2,
        acquire_timeout=0.2,
        idle_ttl=300.0,
        step_timeout=1.0,
        navigation_timeout=1.0,
        request_timeout=5.0,
        request_attempts=3,
        connect_retry=NO_WAIT,
        acquire_retry=RetryPolicy(max_attempts=1, base_delay=0.0, max_delay=0.0, jitter=0.0),
        navigation_retry=NO_WAIT,
    )


@pytest.fixture
def manager(engine_config, fake_driver):
    return SessionManager(engine_config, driver=fake_driver)


@pytest.fixture
def orchestrator(manager, engine_config):
    return ScrapeOrchestrator(manager, engine_config)


@pytest.fixture
def article_html():
    return """
    <!DOCTYPE html>
    <html>
    <head>
        <title>Example Domain</title>
    </head>
    <body>
        <h1 class="title">My Awesome Article</h1>
        <div class="meta">
            <span class="author">Jane Doe</span>
            <span class="date">2023-10-27</span>
        </div>
        <article>
            <p>This is the content of the article.</p>
            <p>Contact: editor@example.com</p>
        </article>
        <ul class="related">
            <li><a href="/related1" class="link">Related 1</a></li>
            <li><a href="/related2" class="link">Related 2</a></li>
            <li><a class="link">No href</a></li>
        </ul>
    </body>
    </html>
    """


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line('markers', 'integration: marks tests as integration tests')
    config.addinivalue_line('markers', 'unit: marks tests as unit tests')


def pytest_collection_modifyitems(config, items):
    """Apply directory-based marks to collected test items."""

    for item in items:
        if hasattr(item, 'fspath'):
            file_path = str(item.fspath)

            if '/tests/integration/' in file_path:
                item.add_marker(pytest.mark.integration)
            elif '/tests/unit/' in file_path:
                item.add_marker(pytest.mark.unit)

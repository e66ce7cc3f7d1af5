import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from scrapewright.config import EngineConfig
from scrapewright.core.session import PlaywrightDriver, PlaywrightSession, create_driver
from scrapewright.core.session.driver import CHROME_ARGS, translate_error
from scrapewright.exceptions import DriverUnavailable, InvalidRequest, NavigationFailed, StepTimeout


def translate(error, step=None):
    return translate_error(error, url='https://example.com/', action='click', timeout=2.0, step=step)


def test_timeout_becomes_step_timeout():
    error = translate(PlaywrightTimeoutError('Timeout 2000ms exceeded.'), step=3)
    assert isinstance(error, StepTimeout)
    assert error.step_index == 3
    assert error.transient is True


def test_closed_target_becomes_fatal_driver_error():
    error = translate(PlaywrightError('Target page, context or browser has been closed'))
    assert isinstance(error, DriverUnavailable)
    assert error.fatal is True


def test_bad_selector_is_permanent():
    error = translate(PlaywrightError('Unexpected token "[" while parsing selector "div["'), step=0)
    assert isinstance(error, InvalidRequest)
    assert error.transient is False
    assert 'step 0' in str(error)


def test_other_errors_become_navigation_failures():
    error = translate(PlaywrightError('net::ERR_NAME_NOT_RESOLVED at https://example.com/'))
    assert isinstance(error, NavigationFailed)
    assert error.transient is True


@pytest.fixture
def page(mocker):
    page = mocker.Mock()
    page.url = 'https://example.com/'
    page.goto = mocker.AsyncMock(return_value=mocker.Mock(status=200))
    page.click = mocker.AsyncMock()
    page.content = mocker.AsyncMock(return_value='<html></html>')
    page.evaluate = mocker.AsyncMock(return_value=1)
    page.wait_for_load_state = mocker.AsyncMock()
    return page


@pytest.fixture
def context(mocker):
    return mocker.Mock(close=mocker.AsyncMock())


@pytest.mark.asyncio
async def test_session_goto_converts_seconds(page, context):
    session = PlaywrightSession(context, page)
    assert await session.goto('https://example.com/', timeout=2.5) == 200
    page.goto.assert_awaited_once_with('https://example.com/', timeout=2500)


@pytest.mark.asyncio
async def test_session_click_translates_errors(page, context):
    page.click.side_effect = PlaywrightTimeoutError('Timeout 1000ms exceeded.')
    session = PlaywrightSession(context, page)
    with pytest.raises(StepTimeout) as exc_info:
        await session.click('#more', timeout=1.0, step=2)
    assert exc_info.value.step_index == 2


@pytest.mark.asyncio
async def test_session_ping_failure_is_driver_unavailable(page, context):
    page.evaluate.side_effect = PlaywrightError('Target closed')
    session = PlaywrightSession(context, page)
    with pytest.raises(DriverUnavailable):
        await session.ping(timeout=1.0)


@pytest.mark.asyncio
async def test_session_ping_hang_is_driver_unavailable(page, context):
    async def hang(_):
        await asyncio.sleep(10)

    page.evaluate.side_effect = hang
    session = PlaywrightSession(context, page)
    with pytest.raises(DriverUnavailable, match='unresponsive'):
        await session.ping(timeout=0.01)


@pytest.mark.asyncio
async def test_session_close_ignores_dead_context(page, context):
    context.close.side_effect = PlaywrightError('Browser has been closed')
    await PlaywrightSession(context, page).close()


def test_sessions_get_unique_ids(page, context):
    assert PlaywrightSession(context, page).session_id != PlaywrightSession(context, page).session_id


def test_create_driver_from_config():
    driver = create_driver(EngineConfig(driver_endpoint='http://chrome:9222', headless=False))
    assert isinstance(driver, PlaywrightDriver)
    assert driver.endpoint == 'http://chrome:9222'
    assert driver.headless is False
    assert '--no-sandbox' in driver.args
    assert driver.args == CHROME_ARGS


@pytest.mark.asyncio
async def test_open_session_closes_context_when_page_fails(mocker, context):
    driver = PlaywrightDriver(endpoint='http://chrome:9222')
    context.new_page = mocker.AsyncMock(side_effect=PlaywrightError('Target page, context or browser has crashed'))
    browser = mocker.Mock(new_context=mocker.AsyncMock(return_value=context))
    mocker.patch.object(driver, '_ensure_browser', mocker.AsyncMock(return_value=browser))

    with pytest.raises(DriverUnavailable) as exc_info:
        await driver.open_session()

    assert exc_info.value.fatal is False
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_open_session_closes_context_on_cancellation(mocker, context):
    driver = PlaywrightDriver()
    context.new_page = mocker.AsyncMock(side_effect=asyncio.CancelledError())
    browser = mocker.Mock(new_context=mocker.AsyncMock(return_value=context))
    mocker.patch.object(driver, '_ensure_browser', mocker.AsyncMock(return_value=browser))

    with pytest.raises(asyncio.CancelledError):
        await driver.open_session()

    context.close.assert_awaited_once()

import pytest

from scrapewright.exceptions import InvalidRule, MissingField, NavigationFailed, RetriesExhausted
from scrapewright.models import RetryPolicy
from scrapewright.retry import RetryContext, is_transient, run_with_retry, wait_bounded_jitter

FAST = RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=0.0)


class Flaky:
    """Fails with the given errors in order, then returns 'ok'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return 'ok'


@pytest.mark.asyncio
async def test_success_first_try():
    op = Flaky()
    ctx = RetryContext(policy=FAST)
    assert await run_with_retry(op, FAST, context=ctx) == 'ok'
    assert op.calls == 1
    assert ctx.attempts == 1
    assert ctx.last_error is None


@pytest.mark.asyncio
async def test_transient_then_success():
    op = Flaky(NavigationFailed('https://example.com', 'reset'))
    ctx = RetryContext(policy=FAST)
    assert await run_with_retry(op, FAST, context=ctx) == 'ok'
    assert op.calls == 2
    assert ctx.last_classification == 'transient'


@pytest.mark.asyncio
async def test_permanent_error_is_not_retried():
    op = Flaky(InvalidRule('title', 'bad'))
    with pytest.raises(InvalidRule):
        await run_with_retry(op, FAST)
    assert op.calls == 1


@pytest.mark.asyncio
async def test_unexpected_error_is_not_retried():
    op = Flaky(KeyError('boom'))
    with pytest.raises(KeyError):
        await run_with_retry(op, FAST)
    assert op.calls == 1


@pytest.mark.asyncio
async def test_transient_forever_exhausts_budget():
    op = Flaky(*[NavigationFailed('https://example.com', f'fail {i}') for i in range(10)])
    with pytest.raises(RetriesExhausted) as exc_info:
        await run_with_retry(op, FAST)
    assert op.calls == 3
    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.last_error, NavigationFailed)
    assert 'fail 2' in str(exc_info.value.last_error)
    assert exc_info.value.transient is False


@pytest.mark.asyncio
async def test_single_attempt_policy():
    op = Flaky(NavigationFailed('https://example.com', 'reset'))
    with pytest.raises(RetriesExhausted):
        await run_with_retry(op, FAST.model_copy(update={'max_attempts': 1}))
    assert op.calls == 1


def test_wait_strategy_follows_policy(mocker):
    policy = RetryPolicy(max_attempts=4, base_delay=1.0, max_delay=3.0, jitter=0.0)
    wait = wait_bounded_jitter(policy)
    delays = [wait(mocker.Mock(attempt_number=n)) for n in (1, 2, 3, 4)]
    assert delays == [1.0, 2.0, 3.0, 3.0]


def test_backoff_never_decreases_and_is_capped():
    policy = RetryPolicy(max_attempts=10, base_delay=0.5, max_delay=8.0, jitter=0.9)
    # Worst case for monotonicity: maximal jitter now, none next time
    for attempt in range(1, 10):
        assert policy.backoff(attempt, rand=0.999) <= policy.backoff(attempt + 1, rand=0.0)
        assert policy.backoff(attempt, rand=0.999) <= 8.0


def test_backoff_first_delay_is_base():
    policy = RetryPolicy(base_delay=0.5, max_delay=10.0, jitter=0.5)
    assert policy.backoff(1, rand=0.0) == 0.5
    assert policy.backoff(3, rand=0.0) == 2.0


def test_is_transient():
    assert is_transient(MissingField('title'))
    assert not is_transient(MissingField('title', transient=False))
    assert not is_transient(InvalidRule('title', 'bad'))
    assert not is_transient(ValueError('x'))

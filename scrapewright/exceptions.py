"""Custom exceptions for scrapewright.

Every error carries a ``transient`` flag set where it is raised. The retry
engine reads that flag and never re-derives it.
"""

from typing import Any


class ScrapeError(Exception):
    """Base class for all scrapewright exceptions."""

    code: str = 'scrape_error'
    transient: bool = False

    def __init__(self, message: str, *, transient: bool | None = None):
        """Initialize the error.

        Args:
            message: Human readable description
            transient: Override the class-level classification

        """
        super().__init__(message)
        if transient is not None:
            self.transient = transient

    @property
    def classification(self) -> str:
        """Return 'transient' or 'permanent'."""
        return 'transient' if self.transient else 'permanent'

    def context(self) -> dict[str, Any]:
        """Structured context for callers (field name, step index, ...)."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for a transport response."""
        return {
            'code': self.code,
            'message': str(self),
            'transient': self.transient,
            **self.context(),
        }


class DriverUnavailable(ScrapeError):
    """Raised when the browser driver cannot be reached or has crashed."""

    code = 'driver_unavailable'
    transient = True

    def __init__(self, endpoint: str | None, reason: str, *, fatal: bool = True, transient: bool | None = None):
        """Initialize driver error.

        Args:
            endpoint: Driver endpoint that failed (None for a locally launched browser)
            reason: Why the driver is unavailable
            fatal: Whether the session that saw this error must be torn down
            transient: Override the default (retryable) classification

        """
        self.endpoint = endpoint
        self.reason = reason
        self.fatal = fatal
        super().__init__(f'Driver unavailable ({endpoint or "local"}): {reason}', transient=transient)

    def context(self) -> dict[str, Any]:
        return {'endpoint': self.endpoint}


class PoolExhausted(ScrapeError):
    """Raised when no session slot frees up within the acquisition timeout."""

    code = 'pool_exhausted'
    transient = True

    def __init__(self, capacity: int, waited: float):
        self.capacity = capacity
        self.waited = waited
        super().__init__(f'No session available (capacity={capacity}) after waiting {waited:.2f}s')

    def context(self) -> dict[str, Any]:
        return {'capacity': self.capacity, 'waited': self.waited}


class StepTimeout(ScrapeError):
    """Raised when a navigation step exceeds its timeout.

    ``step_index`` is None for the initial page load or the stability wait.
    """

    code = 'step_timeout'
    transient = True

    def __init__(self, step_index: int | None, action: str, timeout: float):
        self.step_index = step_index
        self.action = action
        self.timeout = timeout
        where = f'step {step_index} ({action})' if step_index is not None else action
        super().__init__(f'{where} timed out after {timeout:.2f}s')

    def context(self) -> dict[str, Any]:
        return {'step_index': self.step_index, 'action': self.action, 'timeout': self.timeout}


class NavigationFailed(ScrapeError):
    """Raised for non-timeout page errors (DNS failure, detached element, ...)."""

    code = 'navigation_failed'
    transient = True

    def __init__(self, url: str, reason: str, step_index: int | None = None):
        self.url = url
        self.reason = reason
        self.step_index = step_index
        super().__init__(f'Navigation to {url} failed: {reason}')

    def context(self) -> dict[str, Any]:
        return {'url': self.url, 'step_index': self.step_index}


class InvalidRule(ScrapeError):
    """Raised when an extraction rule's selector or pattern is malformed."""

    code = 'invalid_rule'
    transient = False

    def __init__(self, field_name: str, reason: str):
        self.field_name = field_name
        self.reason = reason
        super().__init__(f"Invalid rule for '{field_name}': {reason}")

    def context(self) -> dict[str, Any]:
        return {'field_name': self.field_name}


class InvalidRequest(ScrapeError):
    """Raised when a scrape request is malformed (bad step selector, bad URL)."""

    code = 'invalid_request'
    transient = False


class MissingField(ScrapeError):
    """Raised when a required single-value field matched nothing.

    Transient by default: the page may not have finished rendering.
    """

    code = 'missing_field'
    transient = True

    def __init__(self, field_name: str, *, transient: bool | None = None):
        self.field_name = field_name
        super().__init__(f"Required field '{field_name}' matched no content", transient=transient)

    def context(self) -> dict[str, Any]:
        return {'field_name': self.field_name}


class RetriesExhausted(ScrapeError):
    """Raised when a transient failure persisted through every attempt."""

    code = 'retries_exhausted'
    transient = False

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f'Gave up after {attempts} attempt(s): {last_error}')

    def context(self) -> dict[str, Any]:
        if isinstance(self.last_error, ScrapeError):
            last = self.last_error.to_dict()
        else:
            last = {'message': str(self.last_error)}
        return {'attempts': self.attempts, 'last_error': last}


class ScrapeTimeout(ScrapeError):
    """Raised when a request exceeds its wall-clock budget."""

    code = 'timeout'
    transient = False

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f'Request exceeded its {timeout:.2f}s budget')

    def context(self) -> dict[str, Any]:
        return {'timeout': self.timeout}


class Cancelled(ScrapeError):
    """Raised when work inside a request was cancelled without the caller asking for it."""

    code = 'cancelled'
    transient = False


class InternalError(ScrapeError):
    """Raised when an unexpected exception escapes a request.

    Wraps bugs and untranslated driver errors so callers still get a classified error.
    """

    code = 'internal_error'
    transient = False

    def __init__(self, error: BaseException):
        self.error = error
        super().__init__(f'Unexpected {type(error).__name__}: {error}')

    def context(self) -> dict[str, Any]:
        return {'error_type': type(self.error).__name__}

"""scrapewright - Headless browser scraping service.

Navigate with a pooled browser, extract with selectors and patterns.
"""

from scrapewright.config import EngineConfig
from scrapewright.core import (
    BrowserDriver,
    CompiledRule,
    DriverSession,
    ExtractionPipeline,
    ScrapeOrchestrator,
    Session,
    SessionManager,
)
from scrapewright.exceptions import (
    Cancelled,
    DriverUnavailable,
    InternalError,
    InvalidRequest,
    InvalidRule,
    MissingField,
    NavigationFailed,
    PoolExhausted,
    RetriesExhausted,
    ScrapeError,
    ScrapeTimeout,
    StepTimeout,
)
from scrapewright.models import (
    ExtractionRule,
    NavigationStep,
    RetryPolicy,
    ScrapeMetadata,
    ScrapeRequest,
    ScrapeResult,
    ScrapeState,
)
from scrapewright.retry import RetryContext, run_with_retry

__version__ = '0.1.0'

__all__ = [
    '__version__',
    # Core components
    'EngineConfig',
    'ExtractionPipeline',
    'CompiledRule',
    'ScrapeOrchestrator',
    'SessionManager',
    'Session',
    # Driver capability
    'BrowserDriver',
    'DriverSession',
    # Models
    'ExtractionRule',
    'NavigationStep',
    'ScrapeRequest',
    'ScrapeResult',
    'ScrapeMetadata',
    'ScrapeState',
    'RetryPolicy',
    # Retry
    'RetryContext',
    'run_with_retry',
    # Errors
    'ScrapeError',
    'Cancelled',
    'DriverUnavailable',
    'InternalError',
    'InvalidRequest',
    'InvalidRule',
    'MissingField',
    'NavigationFailed',
    'PoolExhausted',
    'RetriesExhausted',
    'ScrapeTimeout',
    'StepTimeout',
]

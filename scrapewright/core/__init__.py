"""Core engine: extraction, sessions and orchestration."""

from scrapewright.core.extraction import CompiledRule, ExtractionPipeline
from scrapewright.core.orchestrator import ScrapeOrchestrator
from scrapewright.core.session import BrowserDriver, DriverSession, Session, SessionManager

__all__ = [
    'BrowserDriver',
    'CompiledRule',
    'DriverSession',
    'ExtractionPipeline',
    'ScrapeOrchestrator',
    'Session',
    'SessionManager',
]

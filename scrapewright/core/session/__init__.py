"""Browser driver capability and session pool."""

from scrapewright.core.session.driver import (
    BrowserDriver,
    DriverSession,
    PlaywrightDriver,
    PlaywrightSession,
    create_driver,
)
from scrapewright.core.session.manager import Session, SessionManager

__all__ = [
    'BrowserDriver',
    'DriverSession',
    'PlaywrightDriver',
    'PlaywrightSession',
    'Session',
    'SessionManager',
    'create_driver',
]

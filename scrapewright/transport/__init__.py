"""Transport adapters. Both call the same ``invoke`` contract."""

from scrapewright.transport.base import invoke, status_for
from scrapewright.transport.function import handler, run_event
from scrapewright.transport.server import create_app

__all__ = ['create_app', 'handler', 'invoke', 'run_event', 'status_for']

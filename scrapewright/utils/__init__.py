"""Utility components for scrapewright."""

from scrapewright.utils.files import get_logs_path, get_project_root, init_state_dir
from scrapewright.utils.logging import configure_logfire, setup_local_logging

__all__ = [
    'configure_logfire',
    'get_logs_path',
    'get_project_root',
    'init_state_dir',
    'setup_local_logging',
]

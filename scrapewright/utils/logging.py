"""Logging configuration for scrapewright."""

import logging
from datetime import datetime
from pathlib import Path

import logfire

from scrapewright.utils.files import init_state_dir


def _numeric_level(level: str) -> int:
    if level.upper() == 'ALL':
        return logging.NOTSET
    return getattr(logging, level.upper(), logging.DEBUG)


def setup_local_logging(level: str = 'DEBUG') -> Path:
    """Set up local file-based logging.

    Creates a log file in .scrapewright/logs/ and configures the root logger
    to write to it. Console output is left to the CLI.

    Args:
        level: Logging level (e.g., 'DEBUG', 'INFO'). Defaults to 'DEBUG'.

    Returns:
        Path: The path to the created log file.

    """
    logs_dir = init_state_dir()

    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    log_file = logs_dir / f'run_{timestamp}.log'

    numeric_level = _numeric_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    root_logger.addHandler(file_handler)

    return log_file


def configure_logfire(token: str | None = None, service_name: str = 'scrapewright') -> None:
    """Configure logfire spans and events.

    Nothing leaves the process unless a token is given or LOGFIRE_TOKEN is set.

    Args:
        token: Logfire write token
        service_name: Service name attached to every span

    """
    logfire.configure(
        token=token,
        service_name=service_name,
        send_to_logfire='if-token-present',
        console=False,
    )

"""Utility functions for locating the .scrapewright working directory."""

from pathlib import Path

STATE_DIR = '.scrapewright'


def get_project_root() -> Path:
    """Find the project root by searching upwards from the Current Working Directory.

    Stops at the first directory containing a marker file.
    """
    current_path = Path.cwd()

    markers = {'.git', 'pyproject.toml', STATE_DIR, 'requirements.txt'}

    for parent in [current_path] + list(current_path.parents):
        if any((parent / marker).exists() for marker in markers):
            return parent

    # No markers found (e.g. running in /tmp)
    return current_path


def get_logs_path() -> Path:
    """Return the path to the logs directory in .scrapewright."""
    return get_project_root() / STATE_DIR / 'logs'


def init_state_dir() -> Path:
    """Create .scrapewright with its logs directory and return the logs path."""
    state_dir = get_project_root() / STATE_DIR
    logs_dir = state_dir / 'logs'
    logs_dir.mkdir(parents=True, exist_ok=True)

    # Keep run artifacts out of source control
    gitignore = state_dir / '.gitignore'
    if not gitignore.exists():
        gitignore.write_text('# Automatically created by scrapewright\n*\n')

    return logs_dir

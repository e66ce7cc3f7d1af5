from pathlib import Path

from scrapewright.utils import files
from scrapewright.utils.files import get_logs_path, get_project_root, init_state_dir
from scrapewright.utils.logging import setup_local_logging


def test_get_project_root(monkeypatch, tmp_path):
    project_root = tmp_path / 'project'
    project_root.mkdir()
    (project_root / 'pyproject.toml').touch()

    sub_dir = project_root / 'src' / 'deep' / 'dir'
    sub_dir.mkdir(parents=True)

    monkeypatch.setattr(Path, 'cwd', lambda: sub_dir)

    root = get_project_root()
    assert root == project_root


def test_get_project_root_default(monkeypatch, tmp_path):
    # Falls back to CWD if no markers found
    monkeypatch.setattr(Path, 'cwd', lambda: tmp_path)
    assert get_project_root() == tmp_path


def test_init_state_dir(monkeypatch, tmp_path):
    monkeypatch.setattr(files, 'get_project_root', lambda: tmp_path)

    logs_dir = init_state_dir()
    assert logs_dir == get_logs_path()
    assert logs_dir.is_dir()
    assert (tmp_path / '.scrapewright' / '.gitignore').read_text() == '# Automatically created by scrapewright\n*\n'


def test_setup_local_logging_writes_file(monkeypatch, tmp_path):
    import logging

    monkeypatch.setattr(files, 'get_project_root', lambda: tmp_path)
    root_logger = logging.getLogger()
    handlers_before = list(root_logger.handlers)
    level_before = root_logger.level

    try:
        log_file = setup_local_logging('INFO')
        logging.getLogger('scrapewright.test').info('hello from the test')
        for handler in root_logger.handlers:
            handler.flush()
        assert log_file.parent == tmp_path / '.scrapewright' / 'logs'
        assert 'hello from the test' in log_file.read_text()
    finally:
        for handler in root_logger.handlers[:]:
            if handler not in handlers_before:
                root_logger.removeHandler(handler)
                handler.close()
        root_logger.setLevel(level_before)

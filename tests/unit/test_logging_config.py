import logging
from logging.handlers import TimedRotatingFileHandler

import pytest

from app.core.config import Settings
from app.core.logging_config import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_console_only_without_log_dir(restore_root_logger):
    setup_logging(Settings(LOG_DIR="", DEBUG_MODE=False))

    root = restore_root_logger
    assert root.level == logging.INFO
    assert len(root.handlers) == 1
    assert not isinstance(root.handlers[0], TimedRotatingFileHandler)
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_rotating_file_in_log_dir(tmp_path, restore_root_logger):
    setup_logging(Settings(LOG_DIR=str(tmp_path / "logs"), DEBUG_MODE=True, LOG_BACKUP_DAYS=3))

    root = restore_root_logger
    assert root.level == logging.DEBUG
    file_handlers = [h for h in root.handlers if isinstance(h, TimedRotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].backupCount == 3
    assert (tmp_path / "logs" / "gym_checkin.log").exists()

"""
Tests for logging setup.
"""

import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.logging import ROOT_LOGGER_NAME, get_logger, setup_logging


def test_component_loggers_share_root_handlers():
    catalog_logger = get_logger("catalog")

    assert catalog_logger.name == f"{ROOT_LOGGER_NAME}.catalog"
    assert catalog_logger.parent is logging.getLogger(ROOT_LOGGER_NAME)
    assert catalog_logger.handlers == []
    assert logging.getLogger(ROOT_LOGGER_NAME).handlers


def test_setup_logging_writes_file_in_given_dir(tmp_path):
    logger = setup_logging("exercise_matcher_file_test", log_dir=tmp_path)
    try:
        logger.info("catalog loaded")
        for handler in logger.handlers:
            handler.flush()

        log_file = tmp_path / "exercise_matcher_file_test.log"
        assert log_file.exists()
        assert "catalog loaded" in log_file.read_text()
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_setup_logging_is_idempotent(tmp_path):
    first = setup_logging("exercise_matcher_repeat_test", log_dir=tmp_path)
    try:
        handler_count = len(first.handlers)
        second = setup_logging("exercise_matcher_repeat_test", log_dir=tmp_path)

        assert second is first
        assert len(second.handlers) == handler_count
    finally:
        for handler in list(first.handlers):
            handler.close()
            first.removeHandler(handler)

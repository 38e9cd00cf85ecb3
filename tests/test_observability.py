"""
Tests for logging setup — level resolution and handlers.
"""

import logging

import pytest

from runtimekit.core.observability.logging_config import resolve_level, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestResolveLevel:
    def test_flags_win(self):
        env = {"RTK_LOG_LEVEL": "INFO"}
        assert resolve_level(debug=True, quiet=True, env=env) == "DEBUG"
        assert resolve_level(verbose=True, env=env) == "INFO"
        assert resolve_level(quiet=True, env=env) == "ERROR"

    def test_env_then_default(self):
        assert resolve_level(env={"RTK_LOG_LEVEL": "debug"}) == "debug"
        assert resolve_level(env={}) == "WARNING"


class TestSetupLogging:
    def test_console_only(self, restore_root_logger):
        setup_logging("INFO")
        root = restore_root_logger
        assert len(root.handlers) == 1
        assert root.level == logging.INFO

    def test_unknown_level_means_warning(self, restore_root_logger):
        setup_logging("chatty")
        assert restore_root_logger.level == logging.WARNING

    def test_file_handler(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "runtimekit.log"
        setup_logging("ERROR", log_file=str(log_file), log_file_level="DEBUG")

        root = restore_root_logger
        assert root.level == logging.DEBUG
        logging.getLogger("runtimekit.test").debug("cache MISS for status")
        for handler in root.handlers:
            handler.flush()
        assert "cache MISS for status" in log_file.read_text()

    def test_third_party_quieted(self, restore_root_logger):
        logging.getLogger("httpx").setLevel(logging.NOTSET)
        setup_logging("INFO")
        assert logging.getLogger("httpx").level == logging.WARNING

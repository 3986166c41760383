"""Tests for logging setup and the LogContext timer."""

import logging
from pathlib import Path

import pytest
from rich.logging import RichHandler

from pkbimport.utils.logging import PACKAGE_NAME, LogContext, setup_logging


@pytest.fixture
def package_logger():
    """Restore the package logger after setup_logging reconfigures it."""
    logger = logging.getLogger(PACKAGE_NAME)
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.setLevel(saved[0])
    logger.handlers = saved[1]
    logger.propagate = saved[2]


class TestSetupLogging:
    def test_console_handler(self, package_logger: logging.Logger) -> None:
        setup_logging(level="debug")

        assert package_logger.level == logging.DEBUG
        assert [type(h) for h in package_logger.handlers] == [RichHandler]
        assert package_logger.propagate is False

    def test_file_handler(self, package_logger: logging.Logger, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "import.log"

        setup_logging(level="INFO", log_file=log_file)
        package_logger.info("hello file")
        for handler in package_logger.handlers:
            handler.flush()

        assert "hello file" in log_file.read_text(encoding="utf-8")

    def test_quiets_third_party(self, package_logger: logging.Logger) -> None:
        setup_logging(level="DEBUG")

        assert logging.getLogger("bs4").level == logging.WARNING

    def test_repeated_setup_does_not_stack_handlers(self, package_logger: logging.Logger) -> None:
        setup_logging()
        setup_logging()

        assert len(package_logger.handlers) == 1


class TestLogContext:
    def test_logs_start_and_completion(self, caplog) -> None:
        logger = logging.getLogger("logcontext.test")

        with caplog.at_level(logging.INFO, logger="logcontext.test"):
            with LogContext("Loading export", logger=logger) as ctx:
                pass

        messages = [record.getMessage() for record in caplog.records]
        assert messages[0] == "Loading export..."
        assert messages[1].startswith("Loading export completed in")
        assert ctx.elapsed >= 0

    def test_logs_failure_and_reraises(self, caplog) -> None:
        logger = logging.getLogger("logcontext.test")

        with caplog.at_level(logging.INFO, logger="logcontext.test"):
            with pytest.raises(RuntimeError):
                with LogContext("Loading export", logger=logger):
                    raise RuntimeError("boom")

        assert caplog.records[-1].levelno == logging.ERROR
        assert "boom" in caplog.records[-1].getMessage()

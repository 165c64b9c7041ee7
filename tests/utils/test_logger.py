"""
Tests for logging setup.
"""

import pytest
from loguru import logger

from a3s_context.config import LoggingConfig
from a3s_context.utils.logger import get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    setup_logging()


class TestLogging:
    """Test loguru sink configuration."""

    def test_file_sink_creates_log_dir(self, tmp_path):
        """Test enabling the file sink creates its directory."""
        log_dir = tmp_path / "logs"

        setup_logging(LoggingConfig(log_to_file=True, log_dir=str(log_dir)))
        get_logger(__name__).info("hello", extra={"pathway": "a3s://knowledge/docs"})
        logger.complete()

        assert log_dir.is_dir()

    def test_console_only(self, tmp_path):
        """Test the file sink is off by default."""
        log_dir = tmp_path / "logs"

        setup_logging(LoggingConfig(log_dir=str(log_dir)))

        assert not log_dir.exists()

    def test_bound_module(self):
        """Test module loggers carry their name in extra."""
        records = []
        setup_logging(LoggingConfig(level="DEBUG"))
        sink_id = logger.add(records.append, level="DEBUG", format="{message}")

        get_logger("a3s_context.tests").debug("bound")
        logger.remove(sink_id)

        assert records[0].record["extra"]["module"] == "a3s_context.tests"

"""
Unit tests for the package logging setup.
"""

import logging

from mortarIGA.logging_config import setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_level_and_handlers(self):
        """Test that repeated calls do not stack handlers."""
        logger = setup_logging(logging.DEBUG)
        setup_logging(logging.WARNING)

        assert logger.name == "mortarIGA"
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        logger.handlers.clear()

    def test_log_file(self, tmp_path):
        """Test that module loggers write to the log file."""
        path = tmp_path / "mapper.log"
        logger = setup_logging(logging.INFO, log_file=str(path))
        logging.getLogger("mortarIGA.mapping.projection").info("First pass projection")

        for handler in logger.handlers:
            handler.flush()
        text = path.read_text(encoding='utf-8')
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

        assert "Logging initialized." in text
        assert "First pass projection" in text

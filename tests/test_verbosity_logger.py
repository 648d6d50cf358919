"""
Unit tests for licensekeeper.utils.verbosity_logger module.
Tests the FlexibleLogger class and level parsing.
"""

import logging
from unittest.mock import patch

from licensekeeper.utils.verbosity_logger import (
    FlexibleLogger,
    get_logger,
    parse_levels,
    sanitize_log,
)


class TestParseLevels:
    """Test cases for parse_levels."""

    def test_single_level(self):
        """Test a single level name."""
        assert parse_levels("DEBUG") == {logging.DEBUG}

    def test_multiple_levels(self):
        """Test pipe-separated levels, case and whitespace tolerant."""
        assert parse_levels("debug | ERROR") == {logging.DEBUG, logging.ERROR}

    def test_unknown_levels_fall_back(self):
        """Test a list with nothing recognizable falls back to the defaults."""
        assert parse_levels("LOUD|QUIET") == {
            logging.INFO,
            logging.WARNING,
            logging.ERROR,
            logging.CRITICAL,
        }


class TestFlexibleLogger:
    """Test cases for FlexibleLogger class."""

    @patch("licensekeeper.utils.verbosity_logger.get_log_levels")
    @patch("licensekeeper.utils.verbosity_logger.get_log_format")
    def test_initialization(self, mock_get_format, mock_get_levels):
        """Test FlexibleLogger initialization from the configured levels."""
        mock_get_levels.return_value = "DEBUG|ERROR"
        mock_get_format.return_value = "%(message)s"

        logger = FlexibleLogger("licensekeeper.test.init")

        assert logger.name == "licensekeeper.test.init"
        assert logger.enabled_levels == {logging.DEBUG, logging.ERROR}
        assert logger.logger.handlers

    @patch("licensekeeper.utils.verbosity_logger.get_log_levels")
    def test_broken_config_falls_back(self, mock_get_levels):
        """Test a missing logging section does not break logging."""
        mock_get_levels.side_effect = KeyError("logging")

        logger = FlexibleLogger("licensekeeper.test.broken")

        assert logging.INFO in logger.enabled_levels
        assert logging.DEBUG not in logger.enabled_levels

    @patch("licensekeeper.utils.verbosity_logger.get_log_levels")
    def test_only_enabled_levels_are_emitted(self, mock_get_levels):
        """Test filtering by the configured level set."""
        mock_get_levels.return_value = "ERROR"
        logger = FlexibleLogger("licensekeeper.test.filter")

        with patch.object(logger.logger, "log") as mock_log:
            logger.info("routine")
            logger.error("broken %s", "thing")

        mock_log.assert_called_once_with(logging.ERROR, "broken %s", "thing")

    @patch("licensekeeper.utils.verbosity_logger.get_log_levels")
    def test_reload_levels(self, mock_get_levels):
        """Test levels can be re-read after a configuration change."""
        mock_get_levels.return_value = "ERROR"
        logger = FlexibleLogger("licensekeeper.test.reload")
        assert not logger.is_enabled_for(logging.DEBUG)

        mock_get_levels.return_value = "DEBUG"
        logger.reload_levels()

        assert logger.is_enabled_for(logging.DEBUG)
        assert not logger.is_enabled_for(logging.ERROR)

    @patch("licensekeeper.utils.verbosity_logger.get_log_file")
    @patch("licensekeeper.utils.verbosity_logger.get_log_format")
    @patch("licensekeeper.utils.verbosity_logger.get_log_levels")
    def test_log_file_handler(
        self, mock_get_levels, mock_get_format, mock_get_file, tmp_path
    ):
        """Test a configured log file receives formatted records."""
        log_path = tmp_path / "licensekeeper.log"
        mock_get_levels.return_value = "INFO"
        mock_get_format.return_value = "%(levelname)s %(message)s"
        mock_get_file.return_value = str(log_path)

        logger = FlexibleLogger("licensekeeper.test.file")
        file_handlers = [
            h for h in logger.logger.handlers if isinstance(h, logging.FileHandler)
        ]
        try:
            assert len(file_handlers) == 1
            logger.info("renewed version %s", 3)
            file_handlers[0].flush()
            assert log_path.read_text(encoding="utf-8") == "INFO renewed version 3\n"
        finally:
            for handler in list(logger.logger.handlers):
                handler.close()
                logger.logger.removeHandler(handler)

    @patch("licensekeeper.utils.verbosity_logger.get_log_file")
    @patch("licensekeeper.utils.verbosity_logger.get_log_levels")
    def test_unwritable_log_file_uses_console(
        self, mock_get_levels, mock_get_file, tmp_path, capsys
    ):
        """Test an unusable log path leaves console logging in place."""
        mock_get_levels.return_value = "INFO"
        mock_get_file.return_value = str(tmp_path / "missing" / "licensekeeper.log")

        logger = FlexibleLogger("licensekeeper.test.nofile")

        handlers = logger.logger.handlers
        assert len(handlers) == 1
        assert not isinstance(handlers[0], logging.FileHandler)
        assert "Logging to console only" in capsys.readouterr().err

    @patch("licensekeeper.utils.verbosity_logger.get_log_file")
    @patch("licensekeeper.utils.verbosity_logger.get_log_levels")
    def test_no_log_file_configured(self, mock_get_levels, mock_get_file):
        """Test only the console handler is attached by default."""
        mock_get_levels.return_value = "INFO"
        mock_get_file.return_value = None

        logger = FlexibleLogger("licensekeeper.test.console")

        assert len(logger.logger.handlers) == 1
        assert not isinstance(logger.logger.handlers[0], logging.FileHandler)


class TestGetLogger:
    """Test cases for get_logger and sanitize_log."""

    def test_get_logger_is_cached(self):
        """Test the same name returns the same instance."""
        assert get_logger("licensekeeper.test.cache") is get_logger(
            "licensekeeper.test.cache"
        )

    def test_sanitize_log_strips_newlines(self):
        """Test log injection characters are removed."""
        assert sanitize_log("plan\r\nINFO forged") == "planINFO forged"
        assert sanitize_log(42) == "42"

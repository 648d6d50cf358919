"""
Flexible logging utility for LicenseKeeper.

Log output is filtered by a pipe-separated level list from the "logging"
section of the configuration rather than by a single threshold, so an
operator can, for instance, watch renewal DEBUG chatter together with
ERROR output while suppressing routine INFO lines.
"""

import logging
import re
import sys
from typing import Dict, List, Set

from licensekeeper.config.config import get_log_file, get_log_format, get_log_levels
from licensekeeper.utils.logging_formatter import UTCTimestampFormatter

# Matches control characters that can cause log injection (CWE-117)
_CONTROL_CHAR_RE = re.compile(r"[\r\n]")

_FALLBACK_LEVELS = {logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL}

# One FlexibleLogger per logger name
_loggers: Dict[str, "FlexibleLogger"] = {}


def sanitize_log(value) -> str:
    """Sanitize a value for safe logging by removing newline characters (CWE-117)."""
    return _CONTROL_CHAR_RE.sub("", str(value))


def parse_levels(level_config: str) -> Set[int]:
    """
    Turn a level specification such as "INFO|ERROR" into logging constants.
    Unknown names are ignored; an empty result falls back to standard
    operational logging.
    """
    enabled_levels = set()
    for level_name in level_config.split("|"):
        level = logging.getLevelName(level_name.strip().upper())
        if isinstance(level, int):
            enabled_levels.add(level)
    return enabled_levels or set(_FALLBACK_LEVELS)


class FlexibleLogger:
    """
    Logger that supports granular level filtering with pipe-separated configuration.

    Examples:
    - "DEBUG" - Only debug messages
    - "INFO|ERROR" - Only info and error messages
    - "DEBUG|WARNING|ERROR" - Renewal tracing without routine info lines
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.name = name
        self.enabled_levels = self._parse_enabled_levels()

        if not self.logger.handlers:
            formatter = UTCTimestampFormatter(get_log_format())
            for handler in self._build_handlers():
                handler.setFormatter(formatter)
                self.logger.addHandler(handler)
            # Filtering happens in is_enabled_for, not in the stdlib level check
            self.logger.setLevel(logging.DEBUG)

    def _build_handlers(self) -> List[logging.Handler]:
        """Console handler, plus a file handler when logging.file is set."""
        handlers: List[logging.Handler] = [logging.StreamHandler()]
        log_file = get_log_file()
        if not log_file:
            return handlers
        try:
            handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
        except OSError as e:
            print(
                f"WARNING: Cannot write to {log_file} ({e}). Logging to console only.",
                file=sys.stderr,
            )
        return handlers

    def _parse_enabled_levels(self) -> Set[int]:
        try:
            return parse_levels(get_log_levels())
        except (KeyError, AttributeError, TypeError):
            return set(_FALLBACK_LEVELS)

    def reload_levels(self) -> None:
        """Re-read the level list after the configuration changed."""
        self.enabled_levels = self._parse_enabled_levels()

    def is_enabled_for(self, level: int) -> bool:
        """Check if message should be logged based on configured levels."""
        return level in self.enabled_levels

    def log(self, level: int, msg: str, *args, **kwargs):
        """Log at an arbitrary level if verbosity allows."""
        if self.is_enabled_for(level):
            self.logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self.log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self.log(logging.CRITICAL, msg, *args, **kwargs)


def get_logger(name: str) -> FlexibleLogger:
    """Get the flexible logger for a name, creating it on first use."""
    if name not in _loggers:
        _loggers[name] = FlexibleLogger(name)
    return _loggers[name]

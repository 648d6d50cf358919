"""
Log formatter that prefixes every record with a UTC timestamp.
"""

import datetime
import logging


class UTCTimestampFormatter(logging.Formatter):
    """Formatter that stamps records with millisecond-precision UTC time."""

    def format(self, record):
        timestamp = datetime.datetime.now(datetime.timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S.%f"
        )
        # Microseconds down to milliseconds
        return f"[{timestamp[:-3]} UTC] {super().format(record)}"

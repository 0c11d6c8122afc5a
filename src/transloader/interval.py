"""
ISO 8601 ``<start>/<end>`` time intervals.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from .exceptions import InvalidIntervalFormat
from .models import parse_iso8601

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeInterval:
    """A closed UTC time range, both ends included."""

    start: datetime
    end: datetime

    @classmethod
    def parse(cls, interval: str) -> "TimeInterval":
        """Parse ``"2020-01-01T00:00:00Z/2020-01-02T00:00:00Z"``.

        Raises:
            InvalidIntervalFormat: Not two timestamps, or start after end
        """
        logger.debug('Creating interval from "%s"', interval)
        parts = interval.split("/")
        if len(parts) != 2:
            raise InvalidIntervalFormat(f"Invalid ISO8601 interval format: {interval!r}")

        try:
            start, end = (parse_iso8601(part) for part in parts)
        except ValueError as e:
            raise InvalidIntervalFormat(f"Invalid ISO8601 interval format: {interval!r}") from e

        if start > end:
            raise InvalidIntervalFormat("Start date cannot be after end date")
        return cls(start=start, end=end)

    def __contains__(self, moment: object) -> bool:
        return isinstance(moment, datetime) and self.start <= moment <= self.end

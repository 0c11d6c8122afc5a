"""
Day-sharded, key-deduplicated file cache of station observations.

Each station gets a directory tree under the cache root::

    <root>/<provider>/<station>/YYYY/MM/DD.json

Each file holds one UTC day of observations as a map keyed by
``"<timestamp>-<property>"``, so storing the same reading twice
overwrites instead of duplicating it.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .cache import CacheRecord, read_record, strip_file_scheme, write_record
from .models import Observation, ensure_utc

logger = logging.getLogger(__name__)


class ObservationStore:
    """Persist and query observations for one station."""

    def __init__(
        self,
        database_url: Union[str, Path],
        provider_key: str,
        station_key: str,
        log: Optional[logging.Logger] = None,
    ):
        self.provider_key = provider_key
        self.station_key = station_key
        self.path = strip_file_scheme(database_url) / provider_key / station_key
        self._logger = log or logger

    def shard_path(self, day: Union[date, datetime]) -> Path:
        return self.path / f"{day:%Y}" / f"{day:%m}" / f"{day:%d}.json"

    def store(self, observations: Iterable[Observation]) -> None:
        """Upsert observations into their UTC day shards."""
        day_groups: Dict[date, List[Observation]] = defaultdict(list)
        for observation in observations:
            day_groups[observation.timestamp.date()].append(observation)

        for day, group in sorted(day_groups.items()):
            shard = self._read_shard(day)
            for observation in group:
                shard[observation.key] = observation.to_dict()
            self._write_shard(day, shard)
            self._logger.debug(
                "Stored %d observations in %s (%d total)",
                len(group),
                self.shard_path(day),
                len(shard),
            )

    def get_all_in_range(self, start: datetime, end: datetime) -> List[Observation]:
        """Return cached observations with ``start <= timestamp <= end``.

        Days without a shard contribute nothing.
        """
        start = ensure_utc(start)
        end = ensure_utc(end)
        observations: List[Observation] = []

        day = start.date()
        while day <= end.date():
            shard = self._read_shard(day)
            day_observations = [Observation.from_dict(value) for value in shard.values()]
            day_observations.sort(key=lambda obs: (obs.timestamp, obs.property))
            observations.extend(
                obs for obs in day_observations if start <= obs.timestamp <= end
            )
            day += timedelta(days=1)

        return observations

    def _read_shard(self, day: date) -> Dict[str, Any]:
        record = read_record(self.shard_path(day), payload_key="data", log=self._logger)
        if record is None or not record.payload:
            return {}
        return dict(record.payload)

    def _write_shard(self, day: date, shard: Dict[str, Any]) -> None:
        write_record(self.shard_path(day), CacheRecord(payload=shard, payload_key="data"))


def to_pandas(observations: Iterable[Observation]) -> Any:
    """Convert observations to a pandas DataFrame indexed by timestamp."""
    try:
        import pandas as pd
    except ImportError:
        raise ImportError(
            "pandas is required for DataFrame conversion. Install with: pip install pandas"
        ) from None

    rows = [
        {
            "timestamp": obs.timestamp,
            "property": obs.property,
            "result": obs.result,
            "unit": obs.unit,
        }
        for obs in observations
    ]
    df = pd.DataFrame(rows, columns=["timestamp", "property", "result", "unit"])
    return df.set_index("timestamp")

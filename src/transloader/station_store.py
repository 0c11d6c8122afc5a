"""
Single access point to one station's cached metadata and observations.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from .config import ClientConfig
from .interval import TimeInterval
from .metadata_store import MetadataStore
from .models import DataFileCursor, Observation, StationMetadata
from .observation_store import ObservationStore


class StationStore:
    """Scope the observation and metadata caches to a provider and station."""

    def __init__(
        self,
        database_url: Union[str, Path],
        provider: str,
        station: str,
        log: Optional[logging.Logger] = None,
    ):
        self.provider = provider
        self.station = station
        self.data_store = ObservationStore(database_url, provider, station, log=log)
        self.metadata_store = MetadataStore(database_url, provider, station, log=log)

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        provider: str,
        station: str,
        log: Optional[logging.Logger] = None,
    ) -> "StationStore":
        """Open the station's caches under ``config.cache_root``."""
        return cls(config.cache_root, provider, station, log=log)

    @property
    def metadata(self) -> StationMetadata:
        return self.metadata_store.get()

    def merge_metadata(self, metadata: Mapping[str, Any]) -> StationMetadata:
        return self.metadata_store.merge(metadata)

    def set_metadata(self, key: str, value: Any) -> StationMetadata:
        return self.metadata_store.set(key, value)

    def store_data(self, observations: Iterable[Observation]) -> None:
        self.data_store.store(observations)

    def get_data_in_range(self, start: datetime, end: datetime) -> List[Observation]:
        return self.data_store.get_all_in_range(start, end)

    def get_data_in_interval(self, interval: Union[TimeInterval, str]) -> List[Observation]:
        """Return cached observations within an ISO 8601 ``<start>/<end>`` interval.

        Raises:
            InvalidIntervalFormat: ``interval`` is a string that does not parse
        """
        if isinstance(interval, str):
            interval = TimeInterval.parse(interval)
        return self.data_store.get_all_in_range(interval.start, interval.end)

    def update_data_file(self, cursor: DataFileCursor) -> StationMetadata:
        """Store ``cursor`` in ``data_files``, replacing the entry with the same URL."""
        data_files = [
            cursor.to_dict() if existing.url == cursor.url else existing.to_dict()
            for existing in self.metadata.data_files
        ]
        if not any(existing["url"] == cursor.url for existing in data_files):
            data_files.append(cursor.to_dict())
        return self.metadata_store.set("data_files", data_files)

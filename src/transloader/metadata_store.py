"""
File cache of a single station's metadata.

The record lives at ``<root>/<provider>/metadata/<station>.json`` and is
rewritten in full, atomically, on every change.
"""

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .cache import CacheRecord, read_record, strip_file_scheme, write_record
from .models import StationMetadata

logger = logging.getLogger(__name__)


class MetadataStore:
    """Persist station metadata with additive (deep merge) updates."""

    def __init__(
        self,
        database_url: Union[str, Path],
        provider_key: str,
        station_key: str,
        log: Optional[logging.Logger] = None,
    ):
        self.provider_key = provider_key
        self.station_key = station_key
        self.path = (
            strip_file_scheme(database_url) / provider_key / "metadata" / f"{station_key}.json"
        )
        self._logger = log or logger
        self._metadata = self._read()

    @property
    def metadata(self) -> StationMetadata:
        return self._metadata

    def get(self) -> StationMetadata:
        """Return the cached snapshot, empty if nothing has been stored."""
        return self._metadata

    def set(self, key: str, value: Any) -> StationMetadata:
        """Replace one top-level field and persist."""
        return self._commit(self._metadata.set(key, value))

    def merge(self, partial: Mapping[str, Any]) -> StationMetadata:
        """Deep-merge ``partial`` into the cached metadata and persist.

        Nested mappings are merged key by key. Lists are replaced whole, so
        a caller updating ``datastreams`` must pass complete elements,
        remote ids included, or those ids are lost.
        """
        return self._commit(self._metadata.merge(partial))

    def replace(self, metadata: Mapping[str, Any]) -> StationMetadata:
        """Replace the whole snapshot and persist."""
        return self._commit(StationMetadata(metadata))

    def reload(self) -> StationMetadata:
        self._metadata = self._read()
        return self._metadata

    def _commit(self, metadata: StationMetadata) -> StationMetadata:
        write_record(self.path, CacheRecord(payload=metadata.to_dict(), payload_key="metadata"))
        self._metadata = metadata
        self._logger.debug("Committed station metadata to %s", self.path)
        return metadata

    def _read(self) -> StationMetadata:
        record = read_record(self.path, payload_key="metadata", log=self._logger)
        if record is None or not record.payload:
            return StationMetadata()
        return StationMetadata(record.payload)

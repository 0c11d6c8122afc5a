"""
Data models for cached station metadata and observations.
"""

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Dict, Iterator, List, Optional, Set, Union
from urllib.parse import urlparse

Scalar = Union[float, int, str, bool, None]

# Current on-disk layout of metadata records and observation shards
SCHEMA_VERSION = 2


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are assumed to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso8601(value: datetime) -> str:
    """Format a datetime as UTC ISO 8601 with milliseconds and a Z suffix."""
    value = ensure_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso8601(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into an aware UTC datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


@dataclass
class Observation:
    """A single cached reading of one property at one instant."""

    timestamp: datetime
    result: Scalar
    property: str
    unit: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.timestamp, str):
            self.timestamp = parse_iso8601(self.timestamp)
        else:
            self.timestamp = ensure_utc(self.timestamp)

    @property
    def key(self) -> str:
        """Uniqueness key within one station: timestamp plus property."""
        return f"{to_iso8601(self.timestamp)}-{self.property}"

    @property
    def day(self) -> str:
        """UTC calendar day of the observation in "YYYY/MM/DD" format."""
        return self.timestamp.strftime("%Y/%m/%d")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": to_iso8601(self.timestamp),
            "result": self.result,
            "property": self.property,
            "unit": self.unit,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "Observation":
        return cls(
            timestamp=parse_iso8601(data["timestamp"]),
            result=data.get("result"),
            property=data["property"],
            unit=data.get("unit") or "",
        )


@dataclass
class DataFileCursor:
    """Download position of one remote, append-only source file."""

    url: str
    filename: str = ""
    last_modified: Optional[str] = None
    last_length: Optional[int] = None
    headers: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.filename:
            self.filename = PurePosixPath(urlparse(self.url).path).name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "filename": self.filename,
            "last_modified": self.last_modified,
            "last_length": self.last_length,
            "headers": list(self.headers),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "DataFileCursor":
        length = data.get("last_length")
        return cls(
            url=data["url"],
            filename=data.get("filename") or "",
            last_modified=data.get("last_modified"),
            last_length=int(length) if length is not None else None,
            headers=list(data.get("headers") or []),
        )


@dataclass
class DatastreamDescriptor:
    """A datastream of a station and the remote entities linked to it.

    ``links`` holds the ``<Kind>@iot.id`` and ``<Kind>@iot.navigationLink``
    values recorded after upload.
    """

    name: str
    units: Optional[str] = None
    type: Optional[str] = None
    links: Dict[str, Any] = field(default_factory=dict)

    @property
    def remote_link(self) -> Optional[str]:
        return self.links.get("Datastream@iot.navigationLink")

    @property
    def remote_id(self) -> Optional[Any]:
        return self.links.get("Datastream@iot.id")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "units": self.units, "type": self.type}
        data.update(self.links)
        return data

    @classmethod
    def from_dict(cls, data: Mapping) -> "DatastreamDescriptor":
        links = {k: v for k, v in data.items() if "@iot." in k}
        return cls(
            name=data["name"],
            units=data.get("units", data.get("Units")),
            type=data.get("type"),
            links=links,
        )


def deep_merge(base: Mapping, partial: Mapping) -> Dict[str, Any]:
    """Return a new dict with ``partial`` recursively merged into ``base``.

    Keys whose values are mappings on both sides are merged key by key.
    Any other incoming value, lists included, replaces the existing one.
    """
    merged: Dict[str, Any] = {k: copy.deepcopy(v) for k, v in base.items()}
    for key, value in partial.items():
        existing = merged.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class StationMetadata(Mapping):
    """Immutable snapshot of one station's cached metadata.

    Values handed out are copies, so changing them never alters the
    snapshot. Use :meth:`merge` or :meth:`set` to derive a new snapshot.
    """

    def __init__(self, data: Optional[Mapping] = None):
        self._data: Dict[str, Any] = copy.deepcopy(dict(data or {}))

    def __getitem__(self, key: str) -> Any:
        return copy.deepcopy(self._data[key])

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, StationMetadata):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"StationMetadata({self._data!r})"

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    def set(self, key: str, value: Any) -> "StationMetadata":
        data = self.to_dict()
        data[key] = copy.deepcopy(value)
        return StationMetadata(data)

    def merge(self, partial: Mapping) -> "StationMetadata":
        return StationMetadata(deep_merge(self._data, partial))

    @property
    def datastreams(self) -> List[DatastreamDescriptor]:
        return [DatastreamDescriptor.from_dict(d) for d in self._data.get("datastreams") or []]

    @property
    def data_files(self) -> List[DataFileCursor]:
        return [DataFileCursor.from_dict(d) for d in self._data.get("data_files") or []]

    def datastream_names(self) -> Set[str]:
        return {d["name"] for d in self._data.get("datastreams") or [] if d.get("name")}

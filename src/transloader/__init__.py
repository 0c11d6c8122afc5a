"""
Mirror station observations and metadata into a SensorThings API.

Local caching of observations and station metadata, resumable downloads of
growing source files, and idempotent uploads of entities to a remote
entity store.
"""

try:
    from importlib import metadata

    __version__ = metadata.version(__name__)
except Exception:
    __version__ = "unknown"

from .config import ClientConfig
from .exceptions import (
    EntityStoreError,
    InvalidIntervalFormat,
    MalformedSourceDataError,
    RemoteProtocolError,
    SchemaVersionWarning,
    SourceFetchError,
    TransloaderError,
    TransportError,
)
from .fetcher import FetchResult, ResumableFetcher, advance_cursor
from .http import HTTPClient
from .interval import TimeInterval
from .metadata_store import MetadataStore
from .models import (
    SCHEMA_VERSION,
    DatastreamDescriptor,
    DataFileCursor,
    Observation,
    StationMetadata,
    deep_merge,
)
from .observation_store import ObservationStore, to_pandas
from .property_cache import PropertyMatchCache
from .sensorthings import EntityReconciler, Outcome, ReconcileResult, RemoteEntity
from .station_store import StationStore
from .uploader import ObservationUploader, coerce_result, filter_datastreams

__all__ = [
    # Configuration and HTTP
    "ClientConfig",
    "HTTPClient",
    # Caches
    "MetadataStore",
    "ObservationStore",
    "StationStore",
    "to_pandas",
    # Models
    "SCHEMA_VERSION",
    "DataFileCursor",
    "DatastreamDescriptor",
    "Observation",
    "StationMetadata",
    "TimeInterval",
    "deep_merge",
    # Downloads
    "FetchResult",
    "ResumableFetcher",
    "advance_cursor",
    # Uploads
    "EntityReconciler",
    "ObservationUploader",
    "Outcome",
    "PropertyMatchCache",
    "ReconcileResult",
    "RemoteEntity",
    "coerce_result",
    "filter_datastreams",
    # Exceptions
    "EntityStoreError",
    "InvalidIntervalFormat",
    "MalformedSourceDataError",
    "RemoteProtocolError",
    "SchemaVersionWarning",
    "SourceFetchError",
    "TransloaderError",
    "TransportError",
]

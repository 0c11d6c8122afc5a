"""
Versioned JSON envelopes for files in the local cache.
"""

import json
import logging
import os
import tempfile
import warnings
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from .exceptions import SchemaVersionWarning
from .models import SCHEMA_VERSION, to_iso8601

logger = logging.getLogger(__name__)


def strip_file_scheme(database_url: Union[str, Path]) -> Path:
    """Turn a ``file://`` database URL or plain path into a Path."""
    text = str(database_url)
    if text.startswith("file://"):
        text = text[len("file://"):]
    return Path(text)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso8601(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


@dataclass
class CacheRecord:
    """On-disk envelope: a payload tagged with the schema version that wrote it."""

    payload: Any
    schema_version: Optional[int] = SCHEMA_VERSION
    payload_key: str = "data"

    def dumps(self) -> str:
        # Sorted keys and fixed indentation keep rewrites of equal data byte-identical
        document = {self.payload_key: self.payload, "schema_version": self.schema_version}
        return (
            json.dumps(document, indent=2, sort_keys=True, ensure_ascii=False, default=_json_default)
            + "\n"
        )

    @classmethod
    def loads(cls, text: str, payload_key: str = "data") -> "CacheRecord":
        document = json.loads(text)
        return cls(
            payload=document.get(payload_key),
            schema_version=document.get("schema_version"),
            payload_key=payload_key,
        )

    def check_schema(self, path: Path, log: Optional[logging.Logger] = None) -> bool:
        """Warn if the record was written by another schema version."""
        if self.schema_version == SCHEMA_VERSION:
            return True
        message = (
            f"Local cache schema version mismatch in {path}: "
            f"found {self.schema_version!r}, expected {SCHEMA_VERSION}"
        )
        (log or logger).warning(message)
        warnings.warn(message, SchemaVersionWarning, stacklevel=3)
        return False


def read_record(
    path: Path, payload_key: str = "data", log: Optional[logging.Logger] = None
) -> Optional[CacheRecord]:
    """Read a cache file, returning None if it does not exist."""
    if not path.exists():
        return None
    record = CacheRecord.loads(path.read_text(encoding="utf-8"), payload_key=payload_key)
    record.check_schema(path, log)
    return record


def write_record(path: Path, record: CacheRecord) -> None:
    """Write a cache file atomically: readers see the old or the new file, never a mix."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(record.dumps())
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

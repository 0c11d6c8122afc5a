"""
Exceptions for transloader operations.
"""

from typing import Any, Optional


class TransloaderError(Exception):
    """Base exception for transloader-related errors."""

    pass


class TransportError(TransloaderError):
    """Timeout or connection failure talking to a remote host.

    Retryable: cursors and cached metadata only advance after a successful call.
    """

    pass


class RemoteProtocolError(TransloaderError):
    """A remote service answered with an unexpected HTTP status."""

    def __init__(self, message: str, response: Optional[Any] = None):
        super().__init__(message)
        self.response = response

    @property
    def status_code(self) -> Optional[int]:
        """Status code of the attached response, if any."""
        if self.response is None:
            return None
        return getattr(self.response, "status_code", None)


class SourceFetchError(RemoteProtocolError):
    """Error downloading a source data file."""

    pass


class EntityStoreError(RemoteProtocolError):
    """Error reading or writing an entity in the remote entity store."""

    pass


class MalformedSourceDataError(TransloaderError):
    """Downloaded source data could not be parsed."""

    pass


class InvalidIntervalFormat(TransloaderError, ValueError):
    """An ISO 8601 time interval could not be parsed."""

    pass


class SchemaVersionWarning(UserWarning):
    """A cache file was written with a different schema version."""

    pass

"""
Resumable downloads of append-only remote source files.

Data loggers publish files that only ever grow. Given the length seen on
the previous run, :class:`ResumableFetcher` downloads just the new tail:

* no previous length: full download
* remote shorter than before (rotated or truncated): full download
* remote same length: nothing to download
* remote longer: ``Range: bytes=<previous length>-`` request

The fetcher never touches the cache. Callers persist the returned length
and modification time into the file's :class:`DataFileCursor` only after
parsing the body, so a crash or parse failure retries the same range.
"""

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

import httpx

from .exceptions import MalformedSourceDataError, SourceFetchError
from .http import HTTPClient
from .models import DataFileCursor, ensure_utc, to_iso8601

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Byte offsets must refer to the stored representation, not a decoded one
IDENTITY_ENCODING = {"Accept-Encoding": "identity"}


@dataclass
class FetchResult:
    """Outcome of one resumable fetch."""

    body: Optional[bytes]
    content_length: int
    last_modified: Optional[datetime] = None
    full_file: bool = False

    @property
    def unchanged(self) -> bool:
        """True when no new bytes were available."""
        return self.body is None


def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a ``Last-Modified`` header value, returning None if unusable."""
    if not value:
        return None
    try:
        return ensure_utc(parsedate_to_datetime(value))
    except (TypeError, ValueError):
        logger.warning("Could not parse Last-Modified header %r", value)
        return None


def _content_length(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class ResumableFetcher:
    """Fetch only the unseen suffix of a growing remote file."""

    def __init__(self, http_client: HTTPClient, log: Optional[logging.Logger] = None):
        self._http = http_client
        self._logger = log or logger

    def fetch(self, url: str, prior_length: Optional[int] = None) -> FetchResult:
        """
        Download the part of ``url`` that lies beyond ``prior_length`` bytes.

        Args:
            url: Source file URL
            prior_length: Length recorded by the previous fetch, or None

        Returns:
            FetchResult; ``body`` is None when there was nothing new

        Raises:
            SourceFetchError: The source answered with an unexpected status
            TransportError: Timeout or connection failure
        """
        if prior_length is None:
            return self._full_fetch(url)

        head = self._http.head(url, headers=IDENTITY_ENCODING)
        if head.status_code != 200:
            raise SourceFetchError(
                f"HEAD {url} returned HTTP {head.status_code}", response=head
            )

        remote_length = _content_length(head)
        last_modified = parse_http_date(head.headers.get("Last-Modified"))

        if remote_length is None:
            self._logger.info("No Content-Length for %s, downloading full file", url)
            return self._full_fetch(url)

        if remote_length < prior_length:
            self._logger.warning(
                "Remote file %s shrank from %d to %d bytes, re-downloading from start",
                url,
                prior_length,
                remote_length,
            )
            return self._full_fetch(url)

        if remote_length == prior_length:
            self._logger.info("No new data for %s (%d bytes)", url, prior_length)
            return FetchResult(
                body=None, content_length=prior_length, last_modified=last_modified
            )

        return self._partial_fetch(url, prior_length, last_modified)

    def fetch_cursor(self, cursor: DataFileCursor, force_full: bool = False) -> FetchResult:
        """Fetch from a cursor's position; ``force_full`` ignores it."""
        prior_length = None if force_full else cursor.last_length
        return self.fetch(cursor.url, prior_length)

    def fetch_and_parse(
        self,
        cursor: DataFileCursor,
        parse: Callable[[FetchResult, DataFileCursor], T],
    ) -> Tuple[Optional[T], DataFileCursor]:
        """
        Fetch new data for ``cursor`` and parse it.

        ``parse`` receives the fetch result and the advanced cursor; on a full
        download it should store the column headers on the cursor. If it
        raises :class:`MalformedSourceDataError` for a partial body, the whole
        file is downloaded and parsed again.

        Returns:
            Parsed value (None if nothing new) and the cursor to persist
        """
        result = self.fetch_cursor(cursor)
        advanced = advance_cursor(cursor, result)
        if result.unchanged:
            return None, advanced

        try:
            return parse(result, advanced), advanced
        except MalformedSourceDataError as e:
            if result.full_file:
                raise
            self._logger.warning(
                "Could not parse partial data from %s (%s), re-downloading full file",
                cursor.url,
                e,
            )

        result = self.fetch_cursor(cursor, force_full=True)
        advanced = advance_cursor(cursor, result)
        return parse(result, advanced), advanced

    def _full_fetch(self, url: str) -> FetchResult:
        response = self._http.get(url, headers=IDENTITY_ENCODING)
        if response.status_code != 200:
            raise SourceFetchError(
                f"GET {url} returned HTTP {response.status_code}", response=response
            )
        body = response.content
        self._logger.info("Downloaded %d bytes from %s", len(body), url)
        return FetchResult(
            body=body,
            content_length=len(body),
            last_modified=parse_http_date(response.headers.get("Last-Modified")),
            full_file=True,
        )

    def _partial_fetch(
        self, url: str, prior_length: int, last_modified: Optional[datetime]
    ) -> FetchResult:
        headers = dict(IDENTITY_ENCODING)
        headers["Range"] = f"bytes={prior_length}-"
        response = self._http.get(url, headers=headers)
        modified = parse_http_date(response.headers.get("Last-Modified")) or last_modified

        if response.status_code == 416:
            self._logger.info("Range not satisfiable for %s, treating as no new data", url)
            return FetchResult(body=None, content_length=prior_length, last_modified=modified)

        if response.status_code == 206:
            delta = response.content
        elif response.status_code == 200:
            # Server ignored the Range header and sent the whole file
            body = response.content
            if len(body) < prior_length:
                self._logger.warning("Full response for %s is shorter than cursor", url)
                return FetchResult(
                    body=body, content_length=len(body), last_modified=modified, full_file=True
                )
            delta = body[prior_length:]
        else:
            raise SourceFetchError(
                f"Range request for {url} returned HTTP {response.status_code}",
                response=response,
            )

        self._logger.info("Downloaded %d new bytes from %s", len(delta), url)
        return FetchResult(
            body=delta,
            content_length=prior_length + len(delta),
            last_modified=modified,
        )


def advance_cursor(cursor: DataFileCursor, result: FetchResult) -> DataFileCursor:
    """Return ``cursor`` moved past the bytes described by ``result``.

    A full download clears the stored column headers; the caller re-derives
    them from the start of the new body.
    """
    changes: Dict[str, Any] = {"last_length": result.content_length}
    if result.last_modified is not None:
        changes["last_modified"] = to_iso8601(result.last_modified)
    # The advanced cursor owns its header list; the original stays intact on failure
    changes["headers"] = [] if result.full_file else list(cursor.headers)
    return dataclasses.replace(cursor, **changes)

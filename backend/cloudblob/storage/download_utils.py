"""
Ranged HTTP downloads from Cloudinary delivery URLs.

Two modes:
- download_range: one GET with an explicit Range header, returns the body.
- stream_download: HEAD for the content length, then one ranged GET per
  chunk, yielded lazily so only one chunk is held in memory at a time.

Every call builds its own httpx.Client and closes it when done.
Nothing is retried; the first failing request aborts the call.
"""
import logging
import time
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

import httpx

from cloudblob.config import DEFAULT_CHUNK_SIZE
from cloudblob.errors import StorageTransportError
from cloudblob.utils.logging import log_chunk_fetched
from cloudblob.utils.metrics import (
    storage_download_chunks_total,
    storage_download_bytes_total
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte range, rendered as `bytes=<lower>-<upper>`."""

    lower: int
    upper: int

    def __post_init__(self):
        if self.lower < 0 or self.upper < self.lower:
            raise ValueError(
                f"Invalid byte range {self.lower}-{self.upper}: "
                "bounds must satisfy 0 <= lower <= upper"
            )

    @property
    def header_value(self) -> str:
        return f"bytes={self.lower}-{self.upper}"

    @classmethod
    def coerce(cls, value: "RangeLike") -> "ByteRange":
        """
        Accept a ByteRange, an inclusive (lower, upper) tuple, or a Python
        range object (whose exclusive stop becomes upper = stop - 1).
        """
        if isinstance(value, ByteRange):
            return value
        if isinstance(value, range):
            if value.step != 1 or len(value) == 0:
                raise ValueError(f"Byte range must be a non-empty step-1 range, got {value!r}")
            return cls(value.start, value.stop - 1)
        lower, upper = value
        return cls(int(lower), int(upper))


RangeLike = Union[ByteRange, Tuple[int, int], range]


def _check_chunk_size(chunk_size: int) -> None:
    # bool is an int subclass, True would pass as a 1-byte chunk
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
        raise ValueError(f"chunk_size must be a positive integer, got {chunk_size!r}")


def chunk_ranges(content_length: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[ByteRange]:
    """
    Compute the ranges requested by a streamed download.

    The scan bound is content_length + (content_length % chunk_size) so the
    final partial chunk is always covered. Each range is inclusive and
    chunk_size + 1 bytes wide; the next one starts right after it. The last
    range may overshoot the content, the server clips it.

    Example: content_length=7, chunk_size=2 -> 0-2, 3-5, 6-8
    """
    _check_chunk_size(chunk_size)

    upper_limit = content_length + (content_length % chunk_size)
    offset = 0

    while offset < upper_limit:
        yield ByteRange(offset, offset + chunk_size)
        offset += chunk_size + 1


def _build_client(
    timeout: Optional[float],
    verify: bool,
    transport: Optional[httpx.BaseTransport]
) -> httpx.Client:
    return httpx.Client(
        timeout=timeout,
        verify=verify,
        transport=transport,
        follow_redirects=True
    )


def _send(
    client: httpx.Client,
    method: str,
    url: str,
    headers: Optional[dict] = None
) -> httpx.Response:
    """Issue one request, mapping httpx failures to StorageTransportError."""
    try:
        response = client.request(method, url, headers=headers)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        raise StorageTransportError(url, f"HTTP {status}", status_code=status) from e
    except httpx.HTTPError as e:
        raise StorageTransportError(url, str(e) or type(e).__name__) from e
    return response


def _fetch(client: httpx.Client, url: str, byte_range: ByteRange) -> bytes:
    start_time = time.time()
    response = _send(client, "GET", url, headers={"Range": byte_range.header_value})
    chunk = response.content

    storage_download_chunks_total.inc()
    storage_download_bytes_total.inc(len(chunk))
    log_chunk_fetched(
        logger,
        url,
        byte_range.lower,
        byte_range.upper,
        len(chunk),
        duration_ms=(time.time() - start_time) * 1000
    )
    return chunk


def content_length_of(client: httpx.Client, url: str) -> int:
    """HEAD the resource and return its Content-Length."""
    response = _send(client, "HEAD", url)
    raw = response.headers.get("Content-Length")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise StorageTransportError(url, f"missing or invalid Content-Length: {raw!r}") from None


def stream_download(
    source: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    verify: bool = True,
    transport: Optional[httpx.BaseTransport] = None
) -> Iterator[bytes]:
    """
    Return an iterator over the content at `source`, chunk by chunk.

    Each chunk is fetched only when the consumer asks for it, so at most
    one chunk is in memory and chunks arrive in increasing offset order.
    Arguments are checked when this is called; no request is made until
    the first chunk is pulled.

    Args:
        source: Absolute resource URL
        chunk_size: Chunk size in bytes (default 5 MiB)
        timeout: Per-request timeout in seconds, None for no timeout
        verify: Verify TLS certificates
        transport: Optional httpx transport (used by tests)

    Returns:
        Iterator over the raw bytes of each ranged response

    Raises:
        ValueError: If chunk_size is not a positive integer (at call time)
        StorageTransportError: If the HEAD or any ranged GET fails, raised
            during iteration. Chunks already yielded are not retracted.
    """
    _check_chunk_size(chunk_size)
    return _stream(source, chunk_size, timeout, verify, transport)


def _stream(
    source: str,
    chunk_size: int,
    timeout: Optional[float],
    verify: bool,
    transport: Optional[httpx.BaseTransport]
) -> Iterator[bytes]:
    with _build_client(timeout, verify, transport) as client:
        content_length = content_length_of(client, source)
        logger.debug(f"Streaming {content_length} bytes from {source} in {chunk_size}-byte chunks")

        for byte_range in chunk_ranges(content_length, chunk_size):
            # Ranges starting at or past the end would only earn a 416
            if byte_range.lower >= content_length:
                break
            yield _fetch(client, source, byte_range)


def download_range(
    source: str,
    byte_range: RangeLike,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    verify: bool = True,
    transport: Optional[httpx.BaseTransport] = None
) -> bytes:
    """
    Fetch a single inclusive byte range with one GET.

    The body is returned as-is; its length is whatever the server sent.

    Raises:
        ValueError: If the range is malformed
        StorageTransportError: If the request fails
    """
    byte_range = ByteRange.coerce(byte_range)
    with _build_client(timeout, verify, transport) as client:
        return _fetch(client, source, byte_range)


def download_all(
    source: str,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    verify: bool = True,
    transport: Optional[httpx.BaseTransport] = None
) -> bytes:
    """Fetch the whole body of `source` with one plain GET."""
    with _build_client(timeout, verify, transport) as client:
        return _send(client, "GET", source).content

"""
Tests for the range downloader.
"""
import httpx
import pytest

from cloudblob.errors import StorageTransportError
from cloudblob.storage.download_utils import (
    ByteRange,
    chunk_ranges,
    download_all,
    download_range,
    stream_download
)


SOURCE = "https://res.cloudinary.com/demo/image/upload/v1/sample.png"


class TestByteRange:
    """Tests for ByteRange."""

    def test_header_value(self):
        """Test header rendering is inclusive on both ends."""
        assert ByteRange(4, 16).header_value == "bytes=4-16"

    def test_single_byte_range(self):
        """Test lower == upper is a valid one-byte range."""
        assert ByteRange(3, 3).header_value == "bytes=3-3"

    @pytest.mark.parametrize("lower,upper", [(-1, 4), (5, 4)])
    def test_invalid_bounds(self, lower, upper):
        """Test negative or inverted bounds are rejected."""
        with pytest.raises(ValueError, match="Invalid byte range"):
            ByteRange(lower, upper)

    def test_coerce_tuple(self):
        """Test a (lower, upper) tuple is taken as inclusive."""
        assert ByteRange.coerce((4, 16)) == ByteRange(4, 16)

    def test_coerce_python_range(self):
        """Test a Python range maps its exclusive stop to an inclusive upper."""
        assert ByteRange.coerce(range(4, 17)) == ByteRange(4, 16)

    def test_coerce_empty_range(self):
        """Test an empty Python range is rejected."""
        with pytest.raises(ValueError):
            ByteRange.coerce(range(4, 4))


class TestChunkRanges:
    """Tests for the chunk boundary computation."""

    def test_chunk_size_less_than_content_length(self):
        """Test L=7, C=2 gives three chunk+1 wide ranges."""
        assert list(chunk_ranges(7, 2)) == [
            ByteRange(0, 2),
            ByteRange(3, 5),
            ByteRange(6, 8),
        ]

    def test_chunk_size_greater_than_content_length(self):
        """Test L=7, C=100 gives a single range."""
        assert list(chunk_ranges(7, 100)) == [ByteRange(0, 100)]

    def test_empty_content(self):
        """Test zero length content needs no request."""
        assert list(chunk_ranges(0, 100)) == []

    def test_ranges_do_not_overlap(self):
        """Test each range starts right after the previous one ends."""
        ranges = list(chunk_ranges(1000, 64))
        for previous, current in zip(ranges, ranges[1:]):
            assert current.lower == previous.upper + 1

    def test_last_range_reaches_end(self):
        """Test the final range extends to or past the content end."""
        for length, size in [(7, 2), (10, 4), (1000, 64), (5_242_881, 5_242_880)]:
            assert list(chunk_ranges(length, size))[-1].upper >= length - 1

    @pytest.mark.parametrize("chunk_size", [0, -5, 2.5, True, False])
    def test_invalid_chunk_size(self, chunk_size):
        """Test chunk size must be a positive integer, and not a bool."""
        with pytest.raises(ValueError, match="chunk_size"):
            list(chunk_ranges(7, chunk_size))


class TestStreamDownload:
    """Tests for stream_download."""

    def test_yields_all_content_in_one_chunk(self, range_server, content: bytes):
        """Test a chunk size larger than the content yields everything at once."""
        chunks = list(stream_download(SOURCE, 100, transport=range_server.transport))

        assert range_server.ranges == ["bytes=0-100"]
        assert chunks == [content]

    def test_yields_content_in_chunks(self, range_server, content: bytes):
        """Test the exact ranges requested for L=7, C=2."""
        chunks = list(stream_download(SOURCE, 2, transport=range_server.transport))

        assert range_server.ranges == ["bytes=0-2", "bytes=3-5", "bytes=6-8"]
        assert len(chunks) == 3
        assert chunks == [content[0:3], content[3:6], content[6:]]

    def test_issues_head_first(self, range_server):
        """Test the content length is read with a HEAD before any GET."""
        list(stream_download(SOURCE, 2, transport=range_server.transport))

        assert range_server.requests[0].method == "HEAD"
        assert str(range_server.requests[0].url) == SOURCE

    @pytest.mark.parametrize("length,chunk_size", [(1, 1), (10, 4), (64, 8), (100, 7), (1000, 999)])
    def test_chunks_reconstruct_content(self, make_range_server, length, chunk_size):
        """Test concatenated chunks equal the original content."""
        payload = bytes(i % 256 for i in range(length))
        server = make_range_server(payload)

        chunks = list(stream_download(SOURCE, chunk_size, transport=server.transport))

        assert b"".join(chunks) == payload
        assert all(isinstance(chunk, bytes) for chunk in chunks)

    def test_skips_ranges_past_the_end(self, make_range_server):
        """Test a computed range starting at the content end is not requested."""
        server = make_range_server(b"0123456789")

        chunks = list(stream_download(SOURCE, 4, transport=server.transport))

        assert server.ranges == ["bytes=0-4", "bytes=5-9"]
        assert b"".join(chunks) == b"0123456789"

    def test_is_lazy(self, range_server):
        """Test each chunk is requested only when the consumer asks for it."""
        stream = stream_download(SOURCE, 2, transport=range_server.transport)
        assert range_server.requests == []

        next(stream)
        assert range_server.ranges == ["bytes=0-2"]

        next(stream)
        assert range_server.ranges == ["bytes=0-2", "bytes=3-5"]

    def test_head_failure_yields_nothing(self, make_range_server, content: bytes):
        """Test a failed HEAD aborts before any chunk is fetched."""
        server = make_range_server(content, fail_on=lambda request, index: 500 if request.method == "HEAD" else None)
        chunks = []

        with pytest.raises(StorageTransportError) as exc_info:
            for chunk in stream_download(SOURCE, 2, transport=server.transport):
                chunks.append(chunk)

        assert chunks == []
        assert server.get_requests == []
        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    def test_get_failure_mid_stream(self, make_range_server, content: bytes):
        """Test a failed GET aborts after the chunks already delivered."""
        server = make_range_server(content, fail_on=lambda request, index: 503 if index == 1 else None)
        chunks = []

        with pytest.raises(StorageTransportError, match="HTTP 503"):
            for chunk in stream_download(SOURCE, 2, transport=server.transport):
                chunks.append(chunk)

        assert chunks == [content[0:3]]
        assert server.ranges == ["bytes=0-2", "bytes=3-5"]

    def test_connection_failure(self):
        """Test transport errors surface as StorageTransportError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StorageTransportError, match="connection refused") as exc_info:
            list(stream_download(SOURCE, 2, transport=httpx.MockTransport(handler)))

        assert exc_info.value.url == SOURCE
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_missing_content_length(self):
        """Test a HEAD response without a length is a transport error."""
        transport = httpx.MockTransport(lambda request: httpx.Response(200))

        with pytest.raises(StorageTransportError, match="Content-Length"):
            list(stream_download(SOURCE, 2, transport=transport))

    @pytest.mark.parametrize("chunk_size", [0, True, "2"])
    def test_invalid_chunk_size_fails_at_call_time(self, range_server, chunk_size):
        """Test a bad chunk size fails when called, before any iteration or request."""
        with pytest.raises(ValueError, match="chunk_size"):
            stream_download(SOURCE, chunk_size, transport=range_server.transport)

        assert range_server.requests == []


class TestDownloadRange:
    """Tests for download_range."""

    def test_sets_the_range_header(self, make_range_server):
        """Test one GET with Range: bytes=4-16 and the raw body back."""
        payload = bytes(range(256)) * 2
        server = make_range_server(payload)

        chunk = download_range(SOURCE, (4, 16), transport=server.transport)

        assert server.ranges == ["bytes=4-16"]
        assert len(server.requests) == 1
        assert chunk == payload[4:17]

    def test_accepts_python_range(self, make_range_server):
        """Test a Python range selects the same bytes as the inclusive tuple."""
        server = make_range_server(b"0123456789abcdefghij")

        assert download_range(SOURCE, range(4, 17), transport=server.transport) == b"456789abcdefg"
        assert server.ranges == ["bytes=4-16"]

    def test_returns_body_unmodified(self):
        """Test the body is not validated against the requested length."""
        transport = httpx.MockTransport(lambda request: httpx.Response(206, content=b"\xff\x00"))

        assert download_range(SOURCE, ByteRange(0, 99), transport=transport) == b"\xff\x00"

    def test_failure(self, make_range_server):
        """Test a non-2xx response raises without retrying."""
        server = make_range_server(b"", fail_on=lambda request, index: 404)

        with pytest.raises(StorageTransportError) as exc_info:
            download_range(SOURCE, (0, 1), transport=server.transport)

        assert exc_info.value.status_code == 404
        assert len(server.requests) == 1


class TestDownloadAll:
    """Tests for download_all."""

    def test_single_plain_get(self, range_server, content: bytes):
        """Test the whole body comes from one GET without a Range header."""
        assert download_all(SOURCE, transport=range_server.transport) == content
        assert range_server.ranges == [None]

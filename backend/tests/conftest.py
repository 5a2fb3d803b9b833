"""
Test configuration and fixtures.
Delivery URLs are served by an in-process httpx MockTransport; Cloudinary
SDK calls are patched, so no test touches the network.
"""
import os

# Keep a developer's real credentials out of the tests
for _name in list(os.environ):
    if _name.startswith("CLOUDBLOB_"):
        del os.environ[_name]

import logging

import pytest
from typing import Callable, List, Optional
from unittest.mock import patch

import httpx

from cloudblob.config import CloudinaryCredentials
from cloudblob.storage.cloudinary_service import CloudinaryService
from cloudblob.utils.logging import StructuredLogger


SECURE_URL = "https://res.cloudinary.com/demo/image/upload/v1/some-resource-key"


class RangeServer:
    """
    Serves `content` over a MockTransport, honoring Range headers like a CDN
    would (an over-long final range is clipped to the content).

    `fail_on(request, get_index)` may return a status code to fail a request
    with; get_index counts GETs from 0 and is None for HEAD requests.
    """

    def __init__(self, content: bytes, fail_on: Optional[Callable] = None):
        self.content = content
        self.fail_on = fail_on
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        get_index = None
        if request.method == "GET":
            get_index = len(self.get_requests)
        self.requests.append(request)

        if self.fail_on is not None:
            status = self.fail_on(request, get_index)
            if status:
                return httpx.Response(status)

        if request.method == "HEAD":
            return httpx.Response(200, headers={"Content-Length": str(len(self.content))})

        header = request.headers.get("Range")
        if header is None:
            return httpx.Response(200, content=self.content)

        lower, upper = (int(bound) for bound in header.removeprefix("bytes=").split("-"))
        if lower >= len(self.content):
            return httpx.Response(416)

        body = self.content[lower:upper + 1]
        return httpx.Response(
            206,
            content=body,
            headers={"Content-Range": f"bytes {lower}-{lower + len(body) - 1}/{len(self.content)}"}
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def get_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    @property
    def ranges(self) -> List[Optional[str]]:
        """Range header of every GET, in request order."""
        return [r.headers.get("Range") for r in self.get_requests]


@pytest.fixture
def content() -> bytes:
    """Seven bytes of binary content, including non-UTF-8 bytes."""
    return b"\x00\xffab\xfe\x01z"


@pytest.fixture
def range_server(content: bytes) -> RangeServer:
    return RangeServer(content)


@pytest.fixture
def credentials() -> CloudinaryCredentials:
    return CloudinaryCredentials(cloud_name="demo", api_key="abcde", api_secret="12345")


@pytest.fixture
def service(credentials: CloudinaryCredentials, range_server: RangeServer) -> CloudinaryService:
    """Service whose downloads hit the range server."""
    return CloudinaryService(credentials, chunk_size=2, transport=range_server.transport)


@pytest.fixture
def mock_resource():
    """Patch the Admin API lookup of a resource's delivery URL."""
    with patch("cloudinary.api.resource") as mock:
        mock.return_value = {"public_id": "some-resource-key", "secure_url": SECURE_URL}
        yield mock


@pytest.fixture
def make_range_server() -> Callable[..., RangeServer]:
    """Factory for range servers over custom content or failure rules."""
    return RangeServer


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo JSON logging set up by build_service or configure_logging."""
    yield
    package_logger = logging.getLogger(StructuredLogger.LOGGER_NAME)
    package_logger.handlers = []
    package_logger.setLevel(logging.NOTSET)
    StructuredLogger._service_name = None
    StructuredLogger._configured = False

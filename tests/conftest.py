# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures."""

import io
from collections.abc import Callable, Iterator

import httpx
import pytest
from PIL import Image

from ossclient.dotenv_loader import reset_dotenv_state
from ossclient.logging import SecretFilter


def make_jpeg(
    size: tuple[int, int] = (8, 8), color: tuple[int, int, int] = (255, 0, 0)
) -> bytes:
    """Encode a solid-color RGB image as JPEG."""
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A small, valid JPEG."""
    return make_jpeg()


@pytest.fixture(autouse=True)
def _clean_global_state() -> Iterator[None]:
    """Reset redaction secrets and dotenv state between tests."""
    SecretFilter.clear_secrets()
    reset_dotenv_state()
    yield
    SecretFilter.clear_secrets()
    reset_dotenv_state()


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it sees."""

    def __init__(
        self, handler: Callable[[httpx.Request], httpx.Response]
    ) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            request.read()
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def ok_transport() -> RecordingTransport:
    """Transport answering every request with 200."""
    return RecordingTransport(lambda request: httpx.Response(200))

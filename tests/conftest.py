"""Shared fixtures: a mock RMS transport, image bytes and isolated settings."""
import io

import httpx
import pytest
from PIL import Image

from auntiebar.config import Settings


@pytest.fixture
def jpeg_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (200, 30, 30)).save(buf, "JPEG")
    return buf.getvalue()


@pytest.fixture
def rms_transport():
    """Build an httpx.MockTransport serving the segments and broadcasts endpoints.

    segments / broadcasts: dict (JSON body), str (raw body), int (status code),
    an exception instance (raised as a transport error) or None (404).
    Data lists are cut to the requested limit like the real API unless
    truncate is False.
    Requests are recorded on transport.requests.
    """
    def factory(segments=None, broadcasts=None, extra=None, truncate=True):
        requests = []

        def respond(body, request):
            if isinstance(body, Exception):
                raise body
            if body is None:
                return httpx.Response(404)
            if isinstance(body, int):
                return httpx.Response(body)
            if isinstance(body, str):
                return httpx.Response(200, text=body)
            if truncate and isinstance(body, dict) and isinstance(body.get("data"), list) and "limit" in request.url.params:
                body = {**body, "data": body["data"][: int(request.url.params["limit"])]}
            return httpx.Response(200, json=body)

        def handler(request):
            requests.append(request)
            path = request.url.path
            if "/segments/latest" in path:
                return respond(segments, request)
            if "/broadcasts/poll/" in path:
                return respond(broadcasts, request)
            if extra is not None:
                return extra(request)
            return httpx.Response(404)

        transport = httpx.MockTransport(handler)
        transport.requests = requests
        return transport

    return factory


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        data_dir=tmp_path,
        poll_interval_seconds=3600,
        request_timeout_seconds=2.0,
    )

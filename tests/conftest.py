"""Shared fixtures for the renderer tests.

The environment is pinned before any application module is imported so
that importing ``main`` never writes an image library into the working
directory; tests that need a publisher inject one explicitly.
"""

import os

os.environ.setdefault("STORAGE_BACKEND", "none")

import httpx
import pytest
from PIL import Image, ImageDraw

from tests.helpers import BG_COLOR, USER_COLOR, png_bytes, to_data_url


@pytest.fixture
def cairo():
    """Skip the test when CairoSVG or the native cairo library is missing."""
    try:
        import cairosvg  # type: ignore
    except (ImportError, OSError) as exc:
        pytest.skip(f"CairoSVG not available: {exc}")
    return cairosvg


@pytest.fixture
def ellipse_mask(monkeypatch):
    """Rasterize every vector mask as the ellipse inscribed in its box.

    Stands in for CairoSVG so the masking stage runs on hosts without the
    native cairo library. Records the sizes it was asked for.
    """
    from imaging import masks

    sizes = []

    def render(path, view_box, width, height):
        sizes.append((width, height))
        mask = Image.new("L", (width, height), 0)
        ImageDraw.Draw(mask).ellipse((0, 0, width - 1, height - 1), fill=255)
        return mask

    monkeypatch.setattr(masks, "render_mask", render)
    return sizes


@pytest.fixture
def background_server():
    """An httpx transport serving an 800x600 background and recording hits."""
    calls = []
    bg = png_bytes((800, 600), BG_COLOR)

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        if request.url.host == "unreachable.example.test":
            raise httpx.ConnectError("Name or service not known", request=request)
        if request.url.path == "/bg.png":
            return httpx.Response(200, content=bg, headers={"Content-Type": "image/png"})
        if request.url.path == "/not-an-image.png":
            return httpx.Response(200, content=b"<html>nope</html>")
        return httpx.Response(404, content=b"not found")

    transport = httpx.MockTransport(handler)
    transport.calls = calls
    return transport


@pytest.fixture
def render_payload():
    """The 800x600 background / 400x400 user image scenario."""
    user = png_bytes((400, 400), USER_COLOR)
    return {
        "background": {"url": "https://cdn.example.test/bg.png", "width": 800, "height": 600},
        "userImage": {"dataUrl": to_data_url(user), "width": 400, "height": 400},
        "crop": {"x": 0, "y": 0, "width": 400, "height": 400},
        "target": {"x": 200, "y": 100, "width": 200, "height": 200},
        "meta": {"template": "poster-a", "renderSize": 800},
    }

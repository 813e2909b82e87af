"""Image and storage helpers shared by the renderer tests."""

import base64
import io

from PIL import Image

from imaging.storage import PublishedAsset

BG_COLOR = (20, 40, 200)
USER_COLOR = (230, 30, 30)
CIRCLE_PATH = "M 0 100 A 100 100 0 1 0 200 100 A 100 100 0 1 0 0 100 Z"


def png_bytes(size, color, mode="RGB"):
    img = Image.new(mode, size, color=color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def to_data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode()}"


def assert_close(pixel, expected, tol=12):
    """Compare RGB(A) pixels with a tolerance for JPEG loss."""
    for got, want in zip(pixel, expected):
        assert abs(got - want) <= tol, f"{pixel} != {expected}"


class FakeStore:
    """In-memory AssetStore recording every save."""

    def __init__(self, fail_with=None):
        self.saved = {}
        self.fail_with = fail_with
        self.timeouts = []

    def save(self, key, data, content_type, timeout=None):
        self.timeouts.append(timeout)
        if self.fail_with is not None:
            raise self.fail_with
        self.saved[key] = (data, content_type)
        return PublishedAsset(url=f"https://assets.example.test/{key}", bytes=len(data))

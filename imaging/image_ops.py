"""Image manipulation utilities.

This module wraps the raster stages of the render pipeline using Pillow:
decoding the user's data URI, cover-fitting the background, cropping,
resizing, compositing and the final JPEG encode. Every helper returns a
new image and leaves its input untouched. Failures are raised as the
stage errors from ``imaging.errors``.
"""

from __future__ import annotations

import base64
import binascii
from io import BytesIO
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError  # type: ignore[import]

from imaging.config import JPEG_QUALITY
from imaging.errors import CompositeError, CropError, DecodeError, ResizeError

_RESAMPLE = Image.Resampling.LANCZOS
_DECODE_FAILURES = (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError)


def _open_image(data: bytes) -> Image.Image:
    """Open raw image bytes with Pillow, load them fully and convert to RGBA."""
    img = Image.open(BytesIO(data))
    img.load()
    if img.mode != "RGBA":
        img = img.convert("RGBA")
    return img


def decode_data_url(data_url: str) -> bytes:
    """Extract and base64-decode the payload of a ``data:`` URI.

    Args:
        data_url: A URI of the form ``data:<mime>;base64,<payload>``.

    Returns:
        The decoded payload bytes.

    Raises:
        DecodeError: If the URI is not a base64 data URI or the payload
            is empty or not valid base64.
    """
    if not data_url or not data_url.startswith("data:"):
        raise DecodeError("User image must be a data URI (data:<mime>;base64,<payload>)")
    header, sep, payload = data_url.partition(",")
    if not sep:
        raise DecodeError("User image data URI has no ',' before its payload")
    if not header.lower().endswith(";base64"):
        raise DecodeError(f"User image data URI must be base64 encoded, got header '{header}'")
    payload = "".join(payload.split())
    if not payload:
        raise DecodeError("User image data URI has an empty payload")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"User image payload is not valid base64: {exc}") from exc


def decode_image(data: bytes, source: str = "user image") -> Image.Image:
    """Decode encoded image bytes (PNG, JPEG, WebP...) into an RGBA image."""
    try:
        return _open_image(data)
    except _DECODE_FAILURES as exc:
        raise DecodeError(f"Could not decode {source}: {exc}") from exc


def load_background(data: bytes, width: int, height: int, source: str = "background") -> Image.Image:
    """Decode the background and cover-fit it to exactly ``width`` x ``height``.

    The image is scaled, keeping its aspect ratio, until it fills the whole
    box, then the overflow is cropped evenly from both sides. Nothing is
    letterboxed or stretched.

    Args:
        data: Encoded background bytes.
        width: Canvas width.
        height: Canvas height.
        source: Name used in error messages, usually the URL.

    Returns:
        An RGBA image of exactly (width, height).
    """
    if width <= 0 or height <= 0:
        raise ResizeError(f"Background size must be positive, got {width}x{height}")
    img = decode_image(data, source)
    return ImageOps.fit(img, (width, height), method=_RESAMPLE, centering=(0.5, 0.5))


def crop_region(image: Image.Image, x: int, y: int, width: int, height: int) -> Image.Image:
    """Cut the rectangle (x, y, width, height) out of ``image``.

    Raises:
        CropError: If the rectangle is empty or not fully inside the image.
    """
    src_w, src_h = image.size
    if width <= 0 or height <= 0:
        raise CropError(f"Crop size must be positive, got {width}x{height}")
    if x < 0 or y < 0 or x + width > src_w or y + height > src_h:
        raise CropError(
            f"Crop rectangle (x={x}, y={y}, width={width}, height={height}) "
            f"is outside the {src_w}x{src_h} user image"
        )
    return image.crop((x, y, x + width, y + height))


def resize_region(image: Image.Image, width: int, height: int) -> Image.Image:
    """Scale ``image`` to exactly ``width`` x ``height``.

    The aspect ratio is not preserved: the target box comes from the
    client's layout and the region is stretched to fill it.
    """
    if width <= 0 or height <= 0:
        raise ResizeError(f"Resize target must be positive, got {width}x{height}")
    try:
        return image.resize((width, height), _RESAMPLE)
    except (ValueError, OSError, MemoryError) as exc:
        raise ResizeError(f"Could not resize to {width}x{height}: {exc}") from exc


def _visible_box(
    canvas_size: Tuple[int, int], overlay_size: Tuple[int, int], x: int, y: int
) -> Tuple[int, int, int, int]:
    left = max(x, 0)
    top = max(y, 0)
    right = min(x + overlay_size[0], canvas_size[0])
    bottom = min(y + overlay_size[1], canvas_size[1])
    return left, top, right, bottom


def composite_over(background: Image.Image, overlay: Image.Image, x: int, y: int) -> Image.Image:
    """Alpha-blend ``overlay`` onto ``background`` with its top-left at (x, y).

    Whatever falls outside the canvas is clipped, including negative
    offsets. The background is copied, never modified.
    """
    try:
        canvas = background.convert("RGBA")
        left, top, right, bottom = _visible_box(canvas.size, overlay.size, x, y)
        if right <= left or bottom <= top:
            return canvas
        src = overlay.convert("RGBA").crop((left - x, top - y, right - x, bottom - y))
        canvas.alpha_composite(src, dest=(left, top))
        return canvas
    except (ValueError, OSError) as exc:
        raise CompositeError(f"Could not composite user image at ({x}, {y}): {exc}") from exc


def encode_jpeg(image: Image.Image, quality: int = JPEG_QUALITY) -> bytes:
    """Encode ``image`` as JPEG bytes.

    Transparent areas are flattened onto black, which is what JPEG
    encoders do with an alpha channel they cannot store.
    """
    try:
        rgb = image
        if image.mode in ("RGBA", "LA", "P"):
            flat = Image.new("RGBA", image.size, (0, 0, 0, 255))
            flat.alpha_composite(image.convert("RGBA"))
            rgb = flat
        if rgb.mode != "RGB":
            rgb = rgb.convert("RGB")
        buffer = BytesIO()
        rgb.save(buffer, format="JPEG", quality=quality)
        return buffer.getvalue()
    except (ValueError, OSError) as exc:
        raise CompositeError(f"Could not encode JPEG: {exc}") from exc

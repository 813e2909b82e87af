import base64
import io

import pytest
from PIL import Image

from imaging import image_ops
from imaging.errors import CropError, DecodeError, ResizeError
from tests.helpers import assert_close, png_bytes, to_data_url


def _bands(size, colors):
    """Vertical bands of equal width, one per colour."""
    img = Image.new("RGB", size)
    band = size[0] // len(colors)
    for i, color in enumerate(colors):
        img.paste(color, (i * band, 0, (i + 1) * band, size[1]))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


# --- Decoder ---

def test_decode_data_url_returns_payload_bytes():
    raw = png_bytes((4, 4), (1, 2, 3))
    assert image_ops.decode_data_url(to_data_url(raw)) == raw


def test_decode_data_url_ignores_whitespace_in_payload():
    raw = png_bytes((4, 4), (1, 2, 3))
    b64 = base64.b64encode(raw).decode()
    wrapped = "\n".join(b64[i:i + 16] for i in range(0, len(b64), 16))
    assert image_ops.decode_data_url(f"data:image/png;base64,{wrapped}") == raw


@pytest.mark.parametrize(
    "value, fragment",
    [
        ("", "data URI"),
        ("iVBORw0KGgo=", "data URI"),
        ("data:image/png;base64", "','"),
        ("data:image/png,rawbytes", "base64 encoded"),
        ("data:image/png;base64,", "empty payload"),
        ("data:image/png;base64,@@@not-base64@@@", "not valid base64"),
    ],
)
def test_decode_data_url_rejects_malformed_uris(value, fragment):
    with pytest.raises(DecodeError) as exc_info:
        image_ops.decode_data_url(value)
    assert fragment in str(exc_info.value)
    assert exc_info.value.code == "DECODE_ERROR"


def test_decode_image_converts_to_rgba():
    img = image_ops.decode_image(png_bytes((10, 6), (9, 9, 9)))
    assert img.mode == "RGBA"
    assert img.size == (10, 6)


def test_decode_image_rejects_non_image_bytes():
    with pytest.raises(DecodeError):
        image_ops.decode_image(b"definitely not an image")


# --- Background cover fit ---

@pytest.mark.parametrize(
    "source, target",
    [((800, 600), (800, 600)), ((1920, 1080), (800, 600)), ((300, 900), (800, 600)), ((50, 50), (640, 360))],
)
def test_load_background_is_exact_size_and_not_letterboxed(source, target):
    img = image_ops.load_background(png_bytes(source, (250, 250, 250)), *target)
    assert img.size == target
    # A solid source stays solid: no bars were added around it.
    for lo, hi in img.convert("RGB").getextrema():
        assert lo >= 245 and hi <= 255
    assert img.getchannel("A").getextrema() == (255, 255)


def test_load_background_crops_from_the_center():
    # 300x100 -> 100x100 keeps only the middle (green) band.
    data = _bands((300, 100), [(255, 0, 0), (0, 255, 0), (0, 0, 255)])
    img = image_ops.load_background(data, 100, 100)
    for point in [(50, 50), (10, 50), (90, 50), (50, 5), (50, 95)]:
        assert_close(img.getpixel(point)[:3], (0, 255, 0), tol=20)


def test_load_background_scales_before_cropping():
    # 400x100 -> 50x50: scaled to 200x50, middle 50 columns kept.
    data = _bands((400, 100), [(255, 0, 0), (0, 255, 0), (0, 255, 0), (0, 0, 255)])
    img = image_ops.load_background(data, 50, 50)
    assert img.size == (50, 50)
    assert_close(img.getpixel((25, 25))[:3], (0, 255, 0), tol=20)


def test_load_background_names_source_when_undecodable():
    with pytest.raises(DecodeError) as exc_info:
        image_ops.load_background(b"<html/>", 10, 10, source="https://x.test/bg.png")
    assert "https://x.test/bg.png" in str(exc_info.value)


# --- Cropper ---

def test_crop_region_extracts_exact_rectangle():
    src = Image.new("RGBA", (100, 80), (0, 0, 0, 255))
    src.paste((255, 255, 255, 255), (10, 20, 40, 60))
    region = image_ops.crop_region(src, 10, 20, 30, 40)
    assert region.size == (30, 40)
    assert region.getextrema()[0] == (255, 255)
    # the source is untouched
    assert src.getpixel((0, 0)) == (0, 0, 0, 255)


@pytest.mark.parametrize(
    "rect",
    [
        (0, 0, 0, 10),
        (0, 0, 10, -1),
        (-1, 0, 10, 10),
        (0, -5, 10, 10),
        (91, 0, 10, 10),
        (0, 71, 10, 10),
        (0, 0, 101, 80),
    ],
)
def test_crop_region_rejects_rectangles_outside_source(rect):
    src = Image.new("RGBA", (100, 80))
    with pytest.raises(CropError) as exc_info:
        image_ops.crop_region(src, *rect)
    assert exc_info.value.stage == "crop"


def test_crop_region_allows_rectangle_touching_the_edges():
    src = Image.new("RGBA", (100, 80))
    assert image_ops.crop_region(src, 90, 70, 10, 10).size == (10, 10)


# --- Resizer ---

@pytest.mark.parametrize(
    "crop, target",
    [((0, 0, 400, 400), (200, 200)), ((50, 10, 120, 300), (300, 90)), ((399, 399, 1, 1), (17, 33))],
)
def test_crop_then_resize_yields_target_size(crop, target):
    src = Image.new("RGBA", (400, 400), (1, 2, 3, 255))
    region = image_ops.resize_region(image_ops.crop_region(src, *crop), *target)
    assert region.size == target


@pytest.mark.parametrize("size", [(0, 10), (10, 0), (-3, 5)])
def test_resize_region_rejects_empty_target(size):
    with pytest.raises(ResizeError):
        image_ops.resize_region(Image.new("RGBA", (10, 10)), *size)


# --- Compositor ---

def test_composite_at_origin_with_full_size_overlay_is_the_overlay():
    bg = Image.new("RGBA", (64, 48), (0, 0, 255, 255))
    overlay = Image.new("RGBA", (64, 48), (255, 128, 0, 255))
    out = image_ops.composite_over(bg, overlay, 0, 0)
    decoded = Image.open(io.BytesIO(image_ops.encode_jpeg(out))).convert("RGB")
    assert decoded.size == (64, 48)
    assert_close(decoded.getpixel((32, 24)), (255, 128, 0))
    # the background passed in is not modified
    assert bg.getpixel((0, 0)) == (0, 0, 255, 255)


def test_composite_places_overlay_at_offset():
    bg = Image.new("RGBA", (100, 100), (0, 0, 0, 255))
    overlay = Image.new("RGBA", (20, 10), (255, 255, 255, 255))
    out = image_ops.composite_over(bg, overlay, 30, 40)
    assert out.getpixel((30, 40)) == (255, 255, 255, 255)
    assert out.getpixel((49, 49)) == (255, 255, 255, 255)
    assert out.getpixel((50, 49)) == (0, 0, 0, 255)
    assert out.getpixel((29, 40)) == (0, 0, 0, 255)


def test_composite_clips_overlay_to_canvas():
    bg = Image.new("RGBA", (100, 100), (0, 0, 0, 255))
    overlay = Image.new("RGBA", (50, 50), (255, 255, 255, 255))
    out = image_ops.composite_over(bg, overlay, 80, 80)
    assert out.size == (100, 100)
    assert out.getpixel((99, 99)) == (255, 255, 255, 255)
    assert out.getpixel((79, 79)) == (0, 0, 0, 255)

    out = image_ops.composite_over(bg, overlay, -30, -30)
    assert out.getpixel((0, 0)) == (255, 255, 255, 255)
    assert out.getpixel((19, 19)) == (255, 255, 255, 255)
    assert out.getpixel((20, 20)) == (0, 0, 0, 255)

    out = image_ops.composite_over(bg, overlay, 200, 200)
    assert out.getextrema()[0] == (0, 0)


def test_composite_blends_by_overlay_alpha():
    bg = Image.new("RGBA", (10, 10), (0, 0, 0, 255))
    overlay = Image.new("RGBA", (10, 10), (255, 255, 255, 0))
    overlay.putpixel((5, 5), (255, 255, 255, 128))
    out = image_ops.composite_over(bg, overlay, 0, 0)
    assert out.getpixel((0, 0)) == (0, 0, 0, 255)
    assert_close(out.getpixel((5, 5)), (128, 128, 128, 255), tol=2)


def test_encode_jpeg_uses_fixed_quality():
    img = Image.new("RGB", (32, 32), (12, 200, 99))
    for x in range(32):
        img.putpixel((x, x), (255, 255, 255))
    expected = io.BytesIO()
    img.save(expected, format="JPEG", quality=92)
    assert image_ops.encode_jpeg(img) == expected.getvalue()


def test_encode_jpeg_flattens_transparency_onto_black():
    img = Image.new("RGBA", (8, 8), (255, 255, 255, 0))
    data = image_ops.encode_jpeg(img)
    assert data[:2] == b"\xff\xd8"
    decoded = Image.open(io.BytesIO(data)).convert("RGB")
    assert_close(decoded.getpixel((4, 4)), (0, 0, 0), tol=4)

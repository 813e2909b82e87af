"""Vector masks.

A mask is an SVG path authored in its own view-box. It is rasterized as a
white shape on a transparent canvas the size of the resized user image,
and that canvas' alpha is combined with the image using the
destination-in rule: colour from the image, alpha multiplied by the mask.

Rasterization uses CairoSVG, imported lazily so the API still starts on
hosts without the native cairo library; only masked renders fail there.
"""

from __future__ import annotations

from io import BytesIO
from typing import Tuple
from xml.sax.saxutils import quoteattr

from PIL import Image, ImageChops  # type: ignore[import]

from imaging.errors import MaskError

SVG_TEMPLATE = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" viewBox={view_box}>'
    '<path d={path} fill="white"/>'
    "</svg>"
)


def parse_view_box(view_box: str) -> Tuple[float, float, float, float]:
    """Parse ``"min-x min-y width height"`` (spaces and/or commas)."""
    parts = (view_box or "").replace(",", " ").split()
    if len(parts) != 4:
        raise MaskError(f"viewBox must have four numbers, got '{view_box}'")
    try:
        min_x, min_y, vb_w, vb_h = (float(p) for p in parts)
    except ValueError as exc:
        raise MaskError(f"viewBox must have four numbers, got '{view_box}'") from exc
    if vb_w <= 0 or vb_h <= 0:
        raise MaskError(f"viewBox width and height must be positive, got '{view_box}'")
    return min_x, min_y, vb_w, vb_h


def build_mask_svg(path: str, view_box: str, width: int, height: int) -> str:
    if not path or not path.strip():
        raise MaskError("Mask path is empty")
    min_x, min_y, vb_w, vb_h = parse_view_box(view_box)
    return SVG_TEMPLATE.format(
        width=int(width),
        height=int(height),
        view_box=quoteattr(f"{min_x:g} {min_y:g} {vb_w:g} {vb_h:g}"),
        path=quoteattr(path.strip()),
    )


def render_mask(path: str, view_box: str, width: int, height: int) -> Image.Image:
    """Rasterize the path to an ``L`` image of exactly ``width`` x ``height``.

    255 is inside the shape, 0 outside; anti-aliased edges fall between.
    """
    if width <= 0 or height <= 0:
        raise MaskError(f"Mask size must be positive, got {width}x{height}")
    svg = build_mask_svg(path, view_box, width, height)
    try:
        import cairosvg  # type: ignore
    except (ImportError, OSError) as exc:
        raise MaskError(f"Vector masks need CairoSVG and the cairo library: {exc}") from exc
    try:
        png_bytes = cairosvg.svg2png(
            bytestring=svg.encode("utf-8"),
            output_width=width,
            output_height=height,
        )
    except Exception as exc:  # parser and cairo errors alike
        raise MaskError(f"Could not rasterize mask path: {exc}") from exc

    with Image.open(BytesIO(png_bytes)) as raster:
        alpha = raster.convert("RGBA").getchannel("A")
    if alpha.size != (width, height):
        raise MaskError(f"Mask rendered at {alpha.size[0]}x{alpha.size[1]}, expected {width}x{height}")
    return alpha


def apply_mask(image: Image.Image, mask: Image.Image) -> Image.Image:
    """Destination-in: keep ``image``'s colour, scale its alpha by ``mask``."""
    if mask.size != image.size:
        raise MaskError(
            f"Mask is {mask.size[0]}x{mask.size[1]} but the image is {image.size[0]}x{image.size[1]}"
        )
    out = image.convert("RGBA")
    alpha = ImageChops.multiply(out.getchannel("A"), mask.convert("L"))
    out.putalpha(alpha)
    return out


def mask_image(image: Image.Image, path: str, view_box: str) -> Image.Image:
    """Clip ``image`` to the vector shape, rendered at the image's own size."""
    width, height = image.size
    return apply_mask(image, render_mask(path, view_box, width, height))

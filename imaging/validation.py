"""Geometry checks run on a request before any stage does work.

Only what is known up front is checked here: the canvas size, the target
rectangle against the canvas, and the mask description. The crop
rectangle depends on the decoded user image, so the cropper checks it.
"""

from __future__ import annotations

from imaging.errors import MaskError, ValidationError
from imaging.masks import parse_view_box
from imaging.models import CompositionRequest


def validate_request(request: CompositionRequest) -> None:
    """Raise ValidationError if the request cannot be rendered as given."""
    bg = request.background
    if not bg.url or not bg.url.strip():
        raise ValidationError("background.url is required")
    if bg.width <= 0 or bg.height <= 0:
        raise ValidationError(f"background size must be positive, got {bg.width}x{bg.height}")

    if not request.user_image.data_url:
        raise ValidationError("userImage.dataUrl is required")

    t = request.target
    if t.width <= 0 or t.height <= 0:
        raise ValidationError(f"target size must be positive, got {t.width}x{t.height}")
    if t.x < 0 or t.y < 0 or t.x + t.width > bg.width or t.y + t.height > bg.height:
        raise ValidationError(
            f"target rectangle (x={t.x}, y={t.y}, width={t.width}, height={t.height}) "
            f"is outside the {bg.width}x{bg.height} background"
        )

    mask = request.vector_mask
    if mask is None:
        return
    if not mask.path.strip():
        raise ValidationError("mask.path is empty")
    try:
        parse_view_box(mask.view_box)
    except MaskError as exc:
        raise ValidationError(f"mask.{exc}") from exc
    # The mask is always rendered at the target size.
    if mask.width is not None and mask.width != t.width:
        raise ValidationError(f"mask.width {mask.width} does not match target.width {t.width}")
    if mask.height is not None and mask.height != t.height:
        raise ValidationError(f"mask.height {mask.height} does not match target.height {t.height}")

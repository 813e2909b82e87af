# pipeline/render_pipeline.py
import asyncio
import base64
import sys
from dataclasses import dataclass
from typing import Optional

import httpx

from imaging import image_ops, masks
from imaging.config import FETCH_TIMEOUT
from imaging.errors import PublishError
from imaging.fetch import fetch_image
from imaging.models import CompositionRequest
from imaging.storage import PublishedAsset, Publisher
from imaging.validation import validate_request


@dataclass
class CompositionResult:
    image_bytes: bytes
    width: int
    height: int
    asset: Optional[PublishedAsset] = None
    publish_error: Optional[str] = None

    @property
    def byte_length(self) -> int:
        return len(self.image_bytes)

    def data_url(self) -> str:
        b64 = base64.b64encode(self.image_bytes).decode("utf-8")
        return f"data:image/jpeg;base64,{b64}"


def compose(request: CompositionRequest, background_bytes: bytes) -> bytes:
    """
    Run the CPU-bound stages: background fit, decode, crop, resize,
    optional mask, composite and JPEG encode. Returns the JPEG bytes.
    """
    bg = request.background
    canvas = image_ops.load_background(background_bytes, bg.width, bg.height, source=bg.url)

    raw = image_ops.decode_data_url(request.user_image.data_url)
    user = image_ops.decode_image(raw)
    print(f"[render] user image decoded at {user.width}x{user.height}")

    crop = request.crop
    region = image_ops.crop_region(user, crop.x, crop.y, crop.width, crop.height)

    target = request.target
    region = image_ops.resize_region(region, target.width, target.height)

    mask = request.vector_mask
    if mask is not None:
        region = masks.mask_image(region, mask.path, mask.view_box)

    final = image_ops.composite_over(canvas, region, target.x, target.y)
    return image_ops.encode_jpeg(final)


def _summary(request: CompositionRequest) -> dict:
    mask = request.vector_mask
    return {
        "template": request.meta.template,
        "renderSize": request.meta.render_size,
        "userImage": {
            "original": {"width": request.user_image.width, "height": request.user_image.height},
            "crop": request.crop.model_dump(),
            "target": request.target.model_dump(),
        },
        "mask": mask.type if mask is not None else "none",
        "outputSize": {"width": request.background.width, "height": request.background.height},
    }


async def render_composition(
    request: CompositionRequest,
    publisher: Optional[Publisher] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    fetch_timeout: float = FETCH_TIMEOUT,
    publish_failure_fatal: bool = False,
) -> CompositionResult:
    """
    Render one request end to end. Stages run strictly in order and the
    first stage error aborts the request. A publish failure only aborts it
    when ``publish_failure_fatal`` is set; otherwise the render is returned
    with ``publish_error`` filled in.
    """
    validate_request(request)
    summary = _summary(request)
    print(f"[render] request received {summary}")

    background_bytes = await fetch_image(request.background.url, client=http_client, timeout=fetch_timeout)
    print(f"[render] background fetched ({len(background_bytes)} bytes)")

    image_bytes = await asyncio.to_thread(compose, request, background_bytes)
    result = CompositionResult(
        image_bytes=image_bytes,
        width=request.background.width,
        height=request.background.height,
    )

    if publisher is not None:
        try:
            result.asset = await publisher.publish(image_bytes)
            print(f"[render] published {result.asset.url} ({result.asset.bytes} bytes)")
        except PublishError as e:
            if publish_failure_fatal:
                raise
            result.publish_error = str(e)
            print(f"[render] publish failed, returning image anyway: {e}", file=sys.stderr)

    print(f"[render] done {dict(summary, outputBytes=result.byte_length)}")
    return result

"""Pydantic models and data schemas for the render endpoint.

The JSON contract is camelCase (``userImage``, ``dataUrl``, ``viewBox``,
``renderSize``) because it is shared with browser clients. Python code
uses the snake_case attribute names; aliases map between the two.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Rect(_CamelModel):
    """A rectangle in pixel coordinates.

    Attributes:
        x: Left edge.
        y: Top edge.
        width: Width in pixels.
        height: Height in pixels.
    """

    x: int
    y: int
    width: int
    height: int


class BackgroundSpec(_CamelModel):
    url: str
    width: int
    height: int


class UserImageSpec(_CamelModel):
    """The user's picture, embedded as a ``data:<mime>;base64,...`` URI.

    ``width`` and ``height`` are the dimensions the client reports for the
    original picture. They are logged for diagnostics; the crop is checked
    against the decoded image instead.
    """

    data_url: str = Field(alias="dataUrl")
    width: Optional[int] = None
    height: Optional[int] = None


class VectorMask(_CamelModel):
    """A path that the resized user image is clipped to.

    ``svg`` is accepted as a synonym of ``vector`` since existing clients
    send that kind name.
    """

    type: Literal["vector", "svg"]
    path: str
    view_box: str = Field(alias="viewBox")
    width: Optional[int] = None
    height: Optional[int] = None


class NoMask(_CamelModel):
    type: Literal["none"]


Mask = Annotated[Union[VectorMask, NoMask], Field(discriminator="type")]


class RenderMeta(_CamelModel):
    template: Optional[str] = None
    render_size: Optional[Any] = Field(default=None, alias="renderSize")


class CompositionRequest(_CamelModel):
    """Body of ``POST /render``."""

    background: BackgroundSpec
    user_image: UserImageSpec = Field(alias="userImage")
    crop: Rect
    target: Rect
    mask: Optional[Mask] = None
    meta: RenderMeta = Field(default_factory=RenderMeta)

    @property
    def vector_mask(self) -> Optional[VectorMask]:
        """The mask to apply, or ``None`` when the masking stage is skipped."""
        return self.mask if isinstance(self.mask, VectorMask) else None


class AssetInfo(_CamelModel):
    url: str
    bytes: int


class RenderResponse(_CamelModel):
    """Response returned after a successful render.

    Attributes:
        success: Always ``True``.
        image_base64: The JPEG as a ``data:image/jpeg;base64,...`` URI.
        width: Output width (the background canvas width).
        height: Output height.
        bytes: Size of the encoded JPEG.
        asset: Where the render was published, if it was.
        publish_error: Why publishing failed, when it failed but the
            render is still returned.
    """

    success: bool = True
    image_base64: str = Field(alias="imageBase64")
    width: int
    height: int
    bytes: int
    asset: Optional[AssetInfo] = None
    publish_error: Optional[str] = Field(default=None, alias="publishError")


class ErrorResponse(_CamelModel):
    """Body of every failed request; ``stage`` names the step that failed."""

    success: bool = False
    error: str
    stage: str
    code: str

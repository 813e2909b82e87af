"""
Stage-tagged exceptions for the render pipeline
"""
from typing import Dict


class PipelineError(Exception):
    """Base class for every failure raised while rendering a request"""
    stage = "internal"

    @property
    def code(self) -> str:
        return f"{self.stage.upper()}_ERROR"

    def to_dict(self) -> Dict[str, str]:
        """Convert exception to the error fields of a failure response"""
        return {
            "error": str(self),
            "stage": self.stage,
            "code": self.code,
        }


class ValidationError(PipelineError):
    """Raised when the request geometry or mask description is invalid"""
    stage = "validation"


class FetchError(PipelineError):
    """Raised when the background image cannot be downloaded"""
    stage = "fetch"


class DecodeError(PipelineError):
    """Raised when bytes or a data URI cannot be turned into an image"""
    stage = "decode"


class CropError(PipelineError):
    """Raised when the crop rectangle does not fit the decoded image"""
    stage = "crop"


class ResizeError(PipelineError):
    """Raised when the resize target is empty or resampling fails"""
    stage = "resize"


class MaskError(PipelineError):
    """Raised when a vector mask cannot be rendered or applied"""
    stage = "mask"


class CompositeError(PipelineError):
    """Raised when overlaying or encoding the final image fails"""
    stage = "composite"


class PublishError(PipelineError):
    """Raised when the asset store rejects or times out an upload"""
    stage = "publish"

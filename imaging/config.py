"""Process-wide settings for the renderer.

Values are read once from the environment at import time. The pipeline
itself never reads these; ``main.py`` passes what each component needs
when it builds it.

Environment variables:
    STORAGE_BACKEND: 'local' (default), 'gcs' or 'none'.
    IMAGE_LIBRARY_DIR: Base directory for the local backend (default
        './image_library').
    GCS_BUCKET: Bucket name used when STORAGE_BACKEND is 'gcs'.
    PUBLIC_IMAGES: 'true' to make GCS uploads public instead of signing.
    SIGNED_URL_EXPIRES: Signed URL lifetime in seconds (default 7 days).
    PUBLISH_FOLDER: Folder/category renders are stored under.
    PUBLISH_TIMEOUT: Upload timeout in seconds.
    PUBLISH_FAILURE_FATAL: 'true' to fail the request when upload fails.
    FETCH_TIMEOUT: Background download timeout in seconds.
    MAX_BODY_BYTES: Largest accepted request body.
    CORS_ORIGINS: Comma separated list of allowed origins ('*' by default).
    PORT: Port used when running ``python main.py``.
"""

from __future__ import annotations

import os


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "local").lower()
IMAGE_LIBRARY_DIR: str = os.getenv("IMAGE_LIBRARY_DIR", "./image_library")
GCS_BUCKET: str = os.getenv("GCS_BUCKET", "")
PUBLIC_IMAGES: bool = _flag("PUBLIC_IMAGES")
SIGNED_URL_EXPIRES: int = int(os.getenv("SIGNED_URL_EXPIRES", str(7 * 24 * 3600)))

PUBLISH_FOLDER: str = os.getenv("PUBLISH_FOLDER", "renders")
PUBLISH_TIMEOUT: float = float(os.getenv("PUBLISH_TIMEOUT", "30"))
PUBLISH_FAILURE_FATAL: bool = _flag("PUBLISH_FAILURE_FATAL")

FETCH_TIMEOUT: float = float(os.getenv("FETCH_TIMEOUT", "20"))
MAX_BODY_BYTES: int = int(os.getenv("MAX_BODY_BYTES", str(25 * 1024 * 1024)))
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
]
PORT: int = int(os.getenv("PORT", "3000"))

# Fixed output quality; not configurable per request.
JPEG_QUALITY = 92

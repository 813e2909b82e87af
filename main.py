print("🔥 Starting main.py")

import os
import sys
import traceback
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from imaging import config
from imaging.errors import PipelineError, ValidationError
from imaging.models import AssetInfo, CompositionRequest, ErrorResponse, RenderResponse
from imaging.storage import Publisher, build_publisher
from pipeline.render_pipeline import render_composition

# --- Publisher Init ---
try:
    publisher = build_publisher(config.STORAGE_BACKEND)
    if publisher is None:
        print("[startup] STORAGE_BACKEND=none; renders are not published.")
    else:
        print(f"[startup] Publishing renders to '{config.STORAGE_BACKEND}' under '{publisher.folder}/'")
except Exception as e:
    print(f"[startup] Publisher init failed, publishing disabled: {e}", file=sys.stderr)
    publisher = None

# --- App Init ---
app = FastAPI(title="Template Renderer")

# Serve renders written by the local backend under /image_library, matching
# the URLs LocalAssetStore hands out.
if config.STORAGE_BACKEND == "local":
    os.makedirs(config.IMAGE_LIBRARY_DIR, exist_ok=True)
if os.path.isdir(config.IMAGE_LIBRARY_DIR):
    app.mount("/image_library", StaticFiles(directory=config.IMAGE_LIBRARY_DIR), name="image_library")


def _failure(status_code: int, error: str, stage: str, code: str) -> JSONResponse:
    body = ErrorResponse(error=error, stage=stage, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


# --- Middleware ---
@app.middleware("http")
async def limit_body_size(request: Request, call_next):
    length = request.headers.get("content-length")
    if length and length.isdigit() and int(length) > config.MAX_BODY_BYTES:
        return _failure(
            413,
            f"Request body of {length} bytes exceeds the {config.MAX_BODY_BYTES} byte limit",
            "validation",
            "PAYLOAD_TOO_LARGE",
        )
    return await call_next(request)


@app.middleware("http")
async def add_cache_control_header(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith("/image_library/"):
        response.headers["Cache-Control"] = "public, max-age=604800, immutable"
    return response


# Added last so it wraps the handlers above, 413 responses included.
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# --- Error Handlers ---
@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    status_code = 400 if isinstance(exc, ValidationError) else 500
    return _failure(status_code, **exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        where = ".".join(str(p) for p in err.get("loc", ())[1:])
        problems.append(f"{where}: {err.get('msg')}" if where else str(err.get("msg")))
    return _failure(400, "; ".join(problems) or "Invalid request body", "validation", "VALIDATION_ERROR")


# --- Dependencies ---
def get_publisher() -> Optional[Publisher]:
    return publisher


def get_http_client() -> Optional[httpx.AsyncClient]:
    """Client used for the background fetch; ``None`` opens one per request."""
    return None


# --- Endpoints ---
@app.get("/health")
def health():
    return {"status": "ok"}


_FAILURES = {status: {"model": ErrorResponse} for status in (400, 413, 500)}


@app.post("/render", response_model=RenderResponse, responses=_FAILURES)
async def render_endpoint(
    payload: CompositionRequest,
    publisher: Optional[Publisher] = Depends(get_publisher),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
):
    """Composite the user's image onto the background and return a JPEG.

    The image is always returned inline as a data URI. When a publisher is
    configured the render is also uploaded and its URL is reported in
    ``asset``; an upload failure is reported in ``publishError`` unless
    PUBLISH_FAILURE_FATAL is set, in which case the request fails.
    """
    try:
        result = await render_composition(
            payload,
            publisher=publisher,
            http_client=http_client,
            fetch_timeout=config.FETCH_TIMEOUT,
            publish_failure_fatal=config.PUBLISH_FAILURE_FATAL,
        )
    except PipelineError as e:
        print(f"[render] {e.code}: {e}", file=sys.stderr)
        raise
    except Exception as e:
        print(f"[render] Unexpected error: {e}\n{traceback.format_exc()}", file=sys.stderr)
        raise PipelineError(str(e)) from e

    asset = AssetInfo(url=result.asset.url, bytes=result.asset.bytes) if result.asset else None
    return RenderResponse(
        image_base64=result.data_url(),
        width=result.width,
        height=result.height,
        bytes=result.byte_length,
        asset=asset,
        publish_error=result.publish_error,
    )


if __name__ == "__main__":
    import uvicorn

    print(f"🚀 Renderer listening on port {config.PORT}")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)

"""Web app for uploading photos and painting black bars over them.

``create_app()`` builds the FastAPI application: the blob store, the
templates and the routes. Running ``python main.py`` serves it with
uvicorn and reads runtime settings from environment variables so it
respects container / user configuration.

Routes:
    GET  /        upload form
    POST /        store a shrunk copy of the upload, redirect to /edit
    GET  /edit    edit page for a stored image
    GET  /img     stored image with a black bar painted on; saves it with n=1
    GET  /health  health check
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.responses import RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from blackbar import image_ops
from blackbar.errors import BlackbarError, UploadError
from blackbar.models import HealthResponse, OverlaySpec
from blackbar.storage import get_store, key_of

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
DEFAULT_MAX_UPLOAD_BYTES = 16 * 1024 * 1024


def env_bool(name, default=False):
    val = os.getenv(name)
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def form_int(value: Optional[str]) -> int:
    """Parse a form value as an int, treating anything unparsable as 0."""
    try:
        return int(value or "")
    except ValueError:
        return 0


def blob_store(request: Request):
    return request.app.state.store


def create_app(store=None) -> FastAPI:
    """Build the application.

    Args:
        store: Blob store to keep images in. When omitted, the backend
            selected by STORAGE_BACKEND is constructed.
    """
    app = FastAPI(title="Blackbar")
    app.state.store = store if store is not None else get_store()
    app.state.max_upload_bytes = int(os.getenv("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES)))
    app.state.allow_save = env_bool("ALLOW_SAVE", True)
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    @app.exception_handler(BlackbarError)
    async def blackbar_error_handler(request: Request, exc: BlackbarError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return templates.TemplateResponse(
            request, "error.html", {"error": exc.message}, status_code=500
        )

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Basic health check - service is running"""
        return HealthResponse(status="healthy", timestamp=datetime.now(timezone.utc).isoformat())

    @app.get("/")
    async def upload_form(request: Request):
        return templates.TemplateResponse(request, "upload.html", {})

    @app.post("/")
    def upload(image: Optional[UploadFile] = File(None), store=Depends(blob_store)):
        """Store a shrunk JPEG copy of the upload and redirect to its edit page.

        The image is keyed by a hash of the stored bytes, so uploading the
        same picture twice leads to the same edit page.
        """
        if image is None:
            raise UploadError("No image file was uploaded.")
        limit = app.state.max_upload_bytes
        raw_data = image.file.read(limit + 1)
        if not raw_data:
            raise UploadError("The uploaded file is empty.")
        if len(raw_data) > limit:
            raise UploadError(f"The uploaded file is larger than {limit} bytes.")
        data = image_ops.ingest(raw_data)
        key = key_of(data)
        store.put(key, data)
        logger.info("Stored upload %r as %s (%d bytes)", image.filename, key, len(data))
        return RedirectResponse(f"/edit?id={key}", status_code=302)

    @app.get("/edit")
    async def edit(request: Request, image_id: str = Query("", alias="id")):
        return templates.TemplateResponse(request, "edit.html", {"id": image_id})

    @app.get("/img")
    def img(
        image_id: str = Query("", alias="id"),
        x: str = "",
        y: str = "",
        s: str = "",
        n: str = "",
        store=Depends(blob_store),
    ):
        """Return the stored image with a black bar painted at (x, y).

        A non-empty ``n`` saves the result over the stored image, unless
        saving has been disabled with ALLOW_SAVE.
        """
        overlay = OverlaySpec(x=form_int(x), y=form_int(y), size=max(0, form_int(s)))
        data = image_ops.composite(store.get(image_id), overlay)
        if n and app.state.allow_save:
            store.put(image_id, data)
            logger.info("Saved black bar on %s at (%d, %d) size %d", image_id, overlay.x, overlay.y, overlay.size)
        return Response(content=data, media_type="image/jpeg")

    return app


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8080"))
    log_level = os.getenv("LOG_LEVEL", "info")

    logging.basicConfig(
        level=log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    uvicorn.run(create_app(), host=host, port=port, log_level=log_level)

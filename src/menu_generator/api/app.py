from __future__ import annotations

import json
from typing import List, Optional, Tuple

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..config import Settings
from ..domain.constants import EXPORT_FILENAME
from ..domain.models import MenuDocument
from ..errors import ExtractionFailure, MalformedResponse, NoFileProvided
from ..export.renderer import MenuRenderer, export_png_bytes, placeholder_png
from ..logging import get_logger
from ..service import MenuExtractionService


LOG = get_logger("menu-api")

UPLOAD_FIELD = "menuImage"
MAX_PLACEHOLDER_SIDE = 2000


def _clamp(value: int, *, minimum: int, maximum: int) -> int:
    if value < minimum:
        return minimum
    if value > maximum:
        return maximum
    return value


async def _read_upload(request: Request) -> Tuple[UploadFile, bytes]:
    async with request.form() as form:
        upload = form.get(UPLOAD_FIELD)
        if not isinstance(upload, UploadFile):
            raise NoFileProvided("No file uploaded")
        content = await upload.read()
        if not content:
            raise NoFileProvided("Uploaded file is empty")
        return upload, content


def create_app(
    settings: Optional[Settings] = None,
    *,
    service: Optional[MenuExtractionService] = None,
    renderer: Optional[MenuRenderer] = None,
    allow_origins: Optional[List[str]] = None,
) -> Starlette:
    """Create the Starlette app exposing menu extraction and PNG export.

    Settings are resolved once here; a missing provider credential raises
    ConfigurationError and the app is not created.
    """

    if service is None:
        service = MenuExtractionService(settings)
    renderer = renderer or MenuRenderer()
    active = getattr(service, "settings", None)

    async def health(_: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "backend": getattr(active, "backend", None),
                "model": getattr(active, "model_name", None),
            }
        )

    async def process_menu(request: Request) -> JSONResponse:
        try:
            upload, content = await _read_upload(request)
        except NoFileProvided as exc:
            LOG.info("Rejected request: %s", exc)
            return JSONResponse({"error": "No file uploaded"}, status_code=400)

        LOG.info("Processing menu upload %r (%s, %d bytes)", upload.filename, upload.content_type, len(content))
        try:
            document = await run_in_threadpool(service.process_image, content, upload.content_type)
        except (ExtractionFailure, MalformedResponse) as exc:
            LOG.error("Error processing menu: %s", exc)
            return JSONResponse({"error": "Error processing menu", "details": str(exc)}, status_code=500)
        return JSONResponse(document.to_dict())

    async def placeholder(request: Request) -> Response:
        width = _clamp(request.path_params["width"], minimum=1, maximum=MAX_PLACEHOLDER_SIDE)
        height = _clamp(request.path_params["height"], minimum=1, maximum=MAX_PLACEHOLDER_SIDE)
        png = await run_in_threadpool(placeholder_png, width, height)
        return Response(png, media_type="image/png", headers={"Cache-Control": "public, max-age=86400"})

    async def export(request: Request) -> Response:
        try:
            payload = await request.json()
            document = MenuDocument.from_dict(payload)
        except (json.JSONDecodeError, MalformedResponse) as exc:
            return JSONResponse({"error": "Invalid menu document", "details": str(exc)}, status_code=400)
        surface = await run_in_threadpool(renderer.render, document)
        png = export_png_bytes(surface)
        return Response(
            png,
            media_type="image/png",
            headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
        )

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/process-menu", process_menu, methods=["POST"]),
        Route("/api/placeholder/{width:int}/{height:int}", placeholder, methods=["GET"]),
        Route("/api/export", export, methods=["POST"]),
    ]

    app = Starlette(debug=False, routes=routes)

    origins = allow_origins or ["http://localhost:3000", "http://127.0.0.1:3000"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


__all__ = ["create_app"]

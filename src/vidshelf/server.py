"""FastAPI server — thin HTTP wrapper exposing VideoLibrary to the browser."""

import logging
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import Body, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from supabase import create_client

from vidshelf.config import settings
from vidshelf.errors import (
    AggregateError,
    NotFoundError,
    StoreError,
    UploadCancelledError,
    UpstreamError,
    UpstreamRejectedError,
    ValidationError,
)
from vidshelf.models import Origin, StorageVideo
from vidshelf.service import VideoLibrary, build_sources
from vidshelf.session import SessionGate
from vidshelf.transfer import UploadPayload, validate_video_upload

logger = logging.getLogger(__name__)


class LinkRequest(BaseModel):
    url: str | None = None
    origin: Origin = Origin.LINK


class RemoteUploadRequest(BaseModel):
    url: str | None = None


def create_app(library: VideoLibrary | None = None, gate: SessionGate | None = None) -> FastAPI:
    """Build the HTTP application.

    Clients are created here, once per process, and handed to the sources.
    Tests pass a prebuilt library and gate instead.
    """
    http_client: httpx.Client | None = None

    if library is None:
        supabase_client = None
        if settings.supabase_configured:
            supabase_client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key.get_secret_value(),
            )
        if settings.hosting_configured:
            http_client = httpx.Client(timeout=httpx.Timeout(settings.mediacm_timeout))
        library = VideoLibrary(build_sources(supabase_client, http_client))

    if gate is None:
        auth = None
        anon_key = settings.supabase_anon_key.get_secret_value()
        if settings.supabase_url and anon_key:
            auth = create_client(settings.supabase_url, anon_key).auth
        gate = SessionGate(auth)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Active sources: %s", ", ".join(o.value for o in library.origins) or "(none)")
        yield
        if http_client is not None:
            http_client.close()

    app = FastAPI(title="vidshelf", lifespan=lifespan)
    app.state.library = library
    app.middleware("http")(gate)
    _register_error_handlers(app)
    _register_routes(app)
    return app


def get_library(request: Request) -> VideoLibrary:
    return request.app.state.library


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError):
        return _error(400, _describe_invalid(exc))

    @app.exception_handler(ValidationError)
    async def _validation(request: Request, exc: ValidationError):
        return _error(400, str(exc))

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return _error(400, str(exc))

    @app.exception_handler(UploadCancelledError)
    async def _cancelled(request: Request, exc: UploadCancelledError):
        return _error(400, str(exc))

    @app.exception_handler(StoreError)
    async def _store(request: Request, exc: StoreError):
        logger.error("Store error on %s: %s", request.url.path, exc)
        return _error(500, str(exc))

    @app.exception_handler(UpstreamError)
    async def _upstream(request: Request, exc: UpstreamError):
        logger.error("Hosting API error on %s: %s", request.url.path, exc)
        return _error(500, str(exc))

    @app.exception_handler(AggregateError)
    async def _aggregate(request: Request, exc: AggregateError):
        logger.error("All sources failed: %s", exc.errors)
        return _error(500, "Internal server error")


def _describe_invalid(exc: RequestValidationError) -> str:
    """First request validation problem as one line, e.g. "Invalid url: Input should be a valid string"."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Invalid JSON body"
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "form"))
    message = first.get("msg", "invalid value")
    return f"Invalid {field}: {message}" if field else f"Invalid request: {message}"


def _upload_payload(file: UploadFile | None) -> UploadPayload | None:
    if file is None or not file.filename:
        return None
    return UploadPayload(
        filename=file.filename,
        content_type=file.content_type or "",
        stream=file.file,
        size=file.size,
    )


def _log_progress(filename: str):
    def report(sent: int, total: int) -> None:
        if total:
            logger.debug("Upload %s: %d%% (%d / %d bytes)", filename, sent * 100 // total, sent, total)
    return report


def _register_routes(app: FastAPI) -> None:
    @app.get("/api/videos")
    async def list_videos(library: VideoLibrary = Depends(get_library)) -> dict[str, Any]:
        items = await library.list_all()
        files = [item.model_dump(mode="json", by_alias=True) for item in items]
        return {"files": files, "total": len(files)}

    @app.post("/api/videos")
    async def add_video(
        body: LinkRequest | None = Body(None),
        library: VideoLibrary = Depends(get_library),
    ) -> dict[str, Any]:
        if body is None or not (body.url or "").strip():
            raise ValidationError("URL is required")
        item = await library.create(body.origin, body.url)
        return {"success": True, "data": item.model_dump(mode="json", by_alias=True)}

    @app.delete("/api/videos")
    async def delete_video(
        id: str | None = Query(None),
        is_direct_video: str | None = Query(None, alias="isDirectVideo"),
        file_name: str | None = Query(None, alias="fileName"),
        origin: Origin | None = Query(None),
        library: VideoLibrary = Depends(get_library),
    ) -> dict[str, Any]:
        if origin is None:
            origin = Origin.LINK if is_direct_video == "true" else Origin.STORAGE
        await library.delete(origin, id or "", file_name)
        return {"success": True}

    @app.post("/api/videos/upload")
    async def upload_video(
        file: UploadFile | None = File(None),
        origin: Origin = Form(Origin.STORAGE),
        title: str | None = Form(None),
        description: str | None = Form(None),
        library: VideoLibrary = Depends(get_library),
    ) -> dict[str, Any]:
        payload = _upload_payload(file)
        item = await library.upload(
            origin, payload, title=title, description=description,
            on_progress=_log_progress(payload.filename if payload else ""),
        )
        if isinstance(item, StorageVideo):
            size = item.metadata.size if item.metadata else None
            data = {
                "path": item.path,
                "publicUrl": item.public_url,
                "fileName": item.name,
                "originalName": item.original_name,
                "size": size,
                "type": item.metadata.mimetype if item.metadata else None,
            }
        else:
            data = item.model_dump(mode="json", by_alias=True)
        return {"success": True, "data": data}

    # --- Hosting API pass-through ---

    @app.get("/api/mediacm")
    async def mediacm_get(action: str | None = Query(None), library: VideoLibrary = Depends(get_library)):
        if action == "upload-server":
            url = await _proxy(library.hosting.get_upload_server)
            return url if isinstance(url, JSONResponse) else {"uploadUrl": url}
        if action == "file-list":
            return await _proxy(library.hosting.list_payload)
        return _error(400, "Invalid action")

    @app.post("/api/mediacm")
    async def mediacm_post(
        request: Request,
        action: str | None = Query(None),
        library: VideoLibrary = Depends(get_library),
    ):
        hosting = library.hosting
        if action == "remote-upload":
            try:
                body = RemoteUploadRequest.model_validate(await request.json())
            except ValueError as e:
                raise ValidationError("URL is required") from e
            return await _proxy(hosting.ingest_remote_url, body.url or "")
        if action:
            return _error(400, "Invalid action")

        form = await request.form()
        upload = form.get("file")
        payload = _upload_payload(upload if hasattr(upload, "filename") else None)
        validate_video_upload(payload, settings.max_upload_bytes)
        title = form.get("title") or None
        description = form.get("description") or None
        return await _proxy(
            hosting.upload_file, payload, title, description, _log_progress(payload.filename),
        )

    @app.delete("/api/mediacm")
    async def mediacm_delete(
        action: str | None = Query(None),
        file_code: str | None = Query(None),
        library: VideoLibrary = Depends(get_library),
    ):
        if action == "delete" and file_code:
            return await _proxy(library.hosting.delete_file, file_code)
        return _error(400, "Invalid action or missing file_code")

    # --- Pages ---

    @app.get("/dashboard")
    async def dashboard(request: Request, library: VideoLibrary = Depends(get_library)) -> dict[str, Any]:
        items = await library.list_all()
        counts = {o.value: 0 for o in library.origins}
        for item in items:
            counts[item.origin.value] += 1
        user = getattr(request.state, "user", None)
        return {
            "user": getattr(user, "email", None),
            "total": len(items),
            "sources": counts,
        }

    @app.get("/healthz")
    async def healthz(library: VideoLibrary = Depends(get_library)) -> dict[str, Any]:
        return {"status": "ok", "sources": [o.value for o in library.origins]}


async def _proxy(func, *args):
    """Run a blocking hosting call; upstream rejections become 400 like the API's own answer."""
    try:
        return await run_in_threadpool(func, *args)
    except UpstreamRejectedError as e:
        return _error(400, str(e))

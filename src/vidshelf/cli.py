"""CLI interface — thin wrapper over VideoLibrary and the HTTP server."""

import asyncio
import logging
import mimetypes
from pathlib import Path

import httpx
import typer
from supabase import create_client

from vidshelf.classify import classify as classify_url
from vidshelf.config import settings
from vidshelf.errors import VidshelfError
from vidshelf.models import HostedVideo, LinkVideo, Origin, StorageVideo
from vidshelf.service import VideoLibrary, build_sources
from vidshelf.transfer import UploadPayload


app = typer.Typer(
    name="vidshelf",
    help="Browse, upload and manage videos across links, storage and hosting.",
    no_args_is_help=True,
)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _get_library(ctx: typer.Context) -> VideoLibrary:
    """Create a library wired from settings.

    The HTTP client is closed when the command's context is torn down.
    """
    supabase_client = None
    if settings.supabase_configured:
        supabase_client = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key.get_secret_value(),
        )
    http_client = None
    if settings.hosting_configured:
        http_client = httpx.Client(timeout=httpx.Timeout(settings.mediacm_timeout))
        ctx.call_on_close(http_client.close)
    return VideoLibrary(build_sources(supabase_client, http_client))


def _fail(e: Exception) -> None:
    typer.echo(f"❌ {e}", err=True)
    raise typer.Exit(code=1)


@app.command(name="list")
def list_videos(ctx: typer.Context) -> None:
    """List every video from every active source."""
    lib = _get_library(ctx)
    try:
        items = asyncio.run(lib.list_all())
    except VidshelfError as e:
        _fail(e)
    if not items:
        typer.echo("Library is empty. Use 'vidshelf add <url>' or 'vidshelf upload <file>'.")
        return
    for i, item in enumerate(items, 1):
        extra = ""
        if isinstance(item, LinkVideo):
            extra = item.platform
        elif isinstance(item, StorageVideo) and item.metadata and item.metadata.size:
            extra = f"{item.metadata.size / 1024 / 1024:.1f} MB"
        elif isinstance(item, HostedVideo):
            extra = f"{item.duration}s" + ("" if item.can_play else " (processing)")
        typer.echo(f"  {i}. [{item.origin.value:<7s}] {item.id}  {item.name}  {extra}".rstrip())


@app.command()
def add(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="External video URL."),
    hosting: bool = typer.Option(False, "--hosting", help="Ask the hosting API to ingest the URL instead."),
) -> None:
    """Register an external video URL."""
    lib = _get_library(ctx)
    origin = Origin.HOSTING if hosting else Origin.LINK
    try:
        item = asyncio.run(lib.create(origin, url))
    except VidshelfError as e:
        _fail(e)
    typer.echo(f"✅ Added: {item.name}")
    typer.echo(f"   ID:     {item.id}")
    typer.echo(f"   Origin: {item.origin.value}")


@app.command()
def remove(
    ctx: typer.Context,
    origin: Origin = typer.Argument(..., help="Origin of the item: link, storage or hosting."),
    id: str = typer.Argument(..., help="Item ID within its origin."),
    file_name: str | None = typer.Option(None, "--file-name", "-f", help="Object name (storage items)."),
) -> None:
    """Delete one video from the source that owns it."""
    lib = _get_library(ctx)
    if origin == Origin.STORAGE and file_name is None:
        file_name = id
    try:
        asyncio.run(lib.delete(origin, id, file_name))
    except VidshelfError as e:
        _fail(e)
    typer.echo(f"🗑️  Removed: {id} ({origin.value})")


@app.command()
def upload(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Video file to upload."),
    hosting: bool = typer.Option(False, "--hosting", help="Upload to the hosting API instead of storage."),
    title: str | None = typer.Option(None, "--title", "-t", help="Title (hosting uploads)."),
    description: str | None = typer.Option(None, "--description", "-d", help="Description (hosting uploads)."),
) -> None:
    """Upload a video file with a progress bar."""
    lib = _get_library(ctx)
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    origin = Origin.HOSTING if hosting else Origin.STORAGE
    size = path.stat().st_size

    with path.open("rb") as stream, typer.progressbar(length=size, label=f"Uploading {path.name}") as bar:
        reported = 0

        def on_progress(sent: int, total: int) -> None:
            nonlocal reported
            bar.update(sent - reported)
            reported = sent

        payload = UploadPayload(filename=path.name, content_type=content_type, stream=stream, size=size)
        try:
            item = asyncio.run(lib.upload(origin, payload, title, description, on_progress))
        except VidshelfError as e:
            _fail(e)

    typer.echo(f"✅ Uploaded: {item.name}")
    typer.echo(f"   URL: {item.public_url}")


@app.command()
def classify(url: str = typer.Argument(..., help="Video URL to inspect.")) -> None:
    """Show how a link will be embedded and titled."""
    info = classify_url(url, settings.embed_parent_host)
    typer.echo(f"Platform:   {info.platform}")
    typer.echo(f"Title:      {info.title}")
    typer.echo(f"Embed URL:  {info.embed_url or '(none)'}")
    typer.echo(f"Embeddable: {'yes' if info.is_embeddable else 'no (open as link)'}")


@app.command()
def serve(
    host: str = typer.Option(settings.host, "--host", help="Host to bind to."),
    port: int = typer.Option(settings.port, "--port", help="Port to bind to."),
    reload: bool = typer.Option(False, "--reload", help="Enable hot-reload for development."),
) -> None:
    """Start the vidshelf HTTP server."""
    import uvicorn

    typer.echo(f"Starting vidshelf on http://{host}:{port}")
    uvicorn.run(
        "vidshelf.server:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )

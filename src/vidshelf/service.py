"""Core business logic for vidshelf: aggregate, create and delete across sources."""

import asyncio
import logging

from vidshelf.classify import classify
from vidshelf.config import settings
from vidshelf.errors import (
    AggregateError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from vidshelf.models import (
    HostedFile,
    HostedVideo,
    LinkRow,
    LinkVideo,
    Origin,
    StorageVideo,
    StoredObject,
    VideoItem,
)
from vidshelf.sources.base import VideoSource
from vidshelf.sources.hosting import HostingApiSource
from vidshelf.sources.links import LinkTableSource
from vidshelf.sources.storage import ObjectStorageSource
from vidshelf.transfer import CancelToken, ProgressCallback, UploadPayload, validate_video_upload

logger = logging.getLogger(__name__)


def parse_origin(value: str | Origin) -> Origin:
    """Parse an origin tag, raising ValidationError for unknown values."""
    try:
        return Origin(value)
    except ValueError:
        raise ValidationError(f"Unknown origin: {value}") from None


class VideoLibrary:
    """Single orchestration point over the active video sources.

    Both the CLI and the HTTP server are thin wrappers over this class.
    Sources are injected already built; the library never creates clients.
    Every backing call is blocking and runs on a worker thread, so listing
    fans out to all sources concurrently.
    """

    def __init__(
        self,
        sources: list[VideoSource],
        parent_host: str | None = None,
        max_upload_bytes: int | None = None,
    ) -> None:
        self._sources: dict[Origin, VideoSource] = {}
        for source in sources:
            if source.origin in self._sources:
                raise ValueError(f"Duplicate source for origin: {source.origin.value}")
            self._sources[source.origin] = source
        self._parent_host = parent_host or settings.embed_parent_host
        self._max_upload_bytes = max_upload_bytes or settings.max_upload_bytes

    @property
    def origins(self) -> list[Origin]:
        """Active origins in listing order."""
        return [o for o in Origin if o in self._sources]

    @property
    def hosting(self) -> HostingApiSource:
        """The hosting API source, for the pass-through proxy routes.

        Raises:
            UpstreamError: If no hosting source is configured.
        """
        source = self._sources.get(Origin.HOSTING)
        if not isinstance(source, HostingApiSource):
            raise UpstreamError("Hosting API is not configured")
        return source

    async def list_all(self) -> list[VideoItem]:
        """List every video from every active source.

        A failing source is logged and contributes nothing; the call only
        fails when all of them fail.

        Returns:
            Items grouped by origin (links, storage, hosting), each group
            newest first, deduplicated on (origin, id).

        Raises:
            AggregateError: If every active source failed.
        """
        origins = self.origins
        if not origins:
            return []

        results = await asyncio.gather(
            *(asyncio.to_thread(self._sources[o].list) for o in origins),
            return_exceptions=True,
        )

        errors: dict[str, Exception] = {}
        items: list[VideoItem] = []
        seen: set[tuple[Origin, str]] = set()
        for origin, result in zip(origins, results):
            if isinstance(result, Exception):
                logger.warning("Listing %s source failed: %s", origin.value, result)
                errors[origin.value] = result
                continue
            for record in result:
                item = self._to_item(origin, record)
                key = (origin, item.id)
                if key in seen:
                    continue
                seen.add(key)
                items.append(item)

        if len(errors) == len(origins):
            raise AggregateError("All video sources failed", errors)
        return items

    async def create(self, origin: str | Origin, url: str) -> VideoItem:
        """Register an external URL with exactly one source.

        Link origin stores the URL in the links table; hosting origin asks
        the hosting API to ingest it server-side.

        Raises:
            ValidationError: Empty URL, or an origin that cannot take URLs.
        """
        origin = parse_origin(origin)
        if origin == Origin.LINK:
            source = self._require(origin)
            row = await asyncio.to_thread(source.create, url)
            return self._link_item(row)
        if origin == Origin.HOSTING:
            payload = await asyncio.to_thread(self.hosting.ingest_remote_url, url)
            code = str((payload.get("result") or {}).get("filecode") or "")
            return HostedVideo(
                id=code,
                name=classify(url, self._parent_host).title,
                public_url=self.hosting.file_url(code) if code else url,
            )
        raise ValidationError(f"Cannot register links with origin: {origin.value}")

    async def upload(
        self,
        origin: str | Origin,
        payload: UploadPayload | None,
        title: str | None = None,
        description: str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> VideoItem:
        """Upload a video file to the storage bucket or the hosting API.

        The file is validated before any source is touched. Cancelling the
        awaiting task trips the cancel token, which aborts the transfer
        between chunks.

        Raises:
            ValidationError: Missing file, non-video type or oversized file.
            UploadCancelledError: If the cancel token was tripped mid-transfer.
        """
        origin = parse_origin(origin)
        validate_video_upload(payload, self._max_upload_bytes)
        cancel = cancel or CancelToken()

        if origin == Origin.STORAGE:
            source = self._require(origin)
            call = asyncio.to_thread(source.upload, payload, on_progress, cancel)
        elif origin == Origin.HOSTING:
            call = asyncio.to_thread(
                self.hosting.upload_file, payload, title, description, on_progress, cancel,
            )
        else:
            raise ValidationError(f"Cannot upload files with origin: {origin.value}")

        try:
            result = await call
        except asyncio.CancelledError:
            cancel.cancel()
            raise

        if origin == Origin.STORAGE:
            return self._storage_item(result)
        uploaded = (result.get("files") or [{}])[0]
        code = str(uploaded.get("filecode") or "")
        return HostedVideo(
            id=code,
            name=title or uploaded.get("filename") or payload.filename,
            public_url=self.hosting.file_url(code),
        )

    async def delete(self, origin: str | Origin, id: str, extra: str | None = None) -> None:
        """Delete one item from the source matching its origin.

        Args:
            origin: Origin tag of the item.
            id: Item id within its origin.
            extra: Storage object name; required for storage items.

        Raises:
            ValidationError: Missing id, or missing object name for storage.
            NotFoundError: Storage object does not exist.
        """
        origin = parse_origin(origin)
        if not id:
            raise ValidationError("ID is required")
        source = self._require(origin)

        if origin == Origin.STORAGE:
            if not extra:
                raise ValidationError("File name is required for storage files")
            await asyncio.to_thread(source.delete, extra)
        elif origin == Origin.LINK:
            try:
                await asyncio.to_thread(source.delete, id)
            except NotFoundError:
                logger.info("Link %s already gone, nothing to delete", id)
        else:
            await asyncio.to_thread(source.delete, id)

    def _require(self, origin: Origin) -> VideoSource:
        source = self._sources.get(origin)
        if source is None:
            raise ValidationError(f"Source not active: {origin.value}")
        return source

    def _to_item(self, origin: Origin, record) -> VideoItem:
        if origin == Origin.LINK:
            return self._link_item(record)
        if origin == Origin.STORAGE:
            return self._storage_item(record)
        return self._hosted_item(record)

    def _link_item(self, row: LinkRow) -> LinkVideo:
        info = classify(row.url, self._parent_host)
        return LinkVideo(
            id=row.id,
            name=info.title,
            public_url=row.url,
            created_at=row.created_at,
            url=row.url,
            platform=info.platform,
            embed_url=info.embed_url,
            is_embeddable=info.is_embeddable,
        )

    @staticmethod
    def _storage_item(obj: StoredObject) -> StorageVideo:
        return StorageVideo(
            id=obj.id,
            name=obj.name,
            public_url=obj.public_url,
            created_at=obj.created_at,
            path=obj.name,
            metadata=obj.metadata,
            original_name=obj.original_name,
        )

    @staticmethod
    def _hosted_item(f: HostedFile) -> HostedVideo:
        return HostedVideo(
            id=f.file_code,
            name=f.title or f.file_code,
            public_url=f.link,
            created_at=f.uploaded,
            thumbnail=f.thumbnail,
            duration=f.length,
            views=f.views,
            can_play=f.canplay,
            is_public=f.public,
            folder_id=f.fld_id,
        )


def build_sources(supabase_client=None, http_client=None) -> list[VideoSource]:
    """Wire the sources named in settings.active_sources from the given clients.

    Sources whose client is missing are skipped with a warning.
    """
    sources: list[VideoSource] = []
    for name in settings.active_sources:
        if name == Origin.LINK.value and supabase_client is not None:
            sources.append(LinkTableSource(supabase_client))
        elif name == Origin.STORAGE.value and supabase_client is not None:
            sources.append(ObjectStorageSource(supabase_client))
        elif name == Origin.HOSTING.value and http_client is not None and settings.hosting_configured:
            sources.append(HostingApiSource(http_client, settings.mediacm_api_key.get_secret_value()))
        else:
            logger.warning("Source %r requested but not configured; skipping", name)
    return sources

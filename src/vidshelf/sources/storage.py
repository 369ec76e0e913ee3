"""Supabase Storage bucket holding uploaded video files."""

import logging
import time
from datetime import datetime, timezone

from supabase import Client

from vidshelf.config import settings
from vidshelf.errors import NotFoundError, StoreError
from vidshelf.models import ObjectMetadata, Origin, StoredObject
from vidshelf.sources.base import VideoSource
from vidshelf.transfer import CancelToken, ProgressCallback, ProgressReader, UploadPayload, validate_video_upload

logger = logging.getLogger(__name__)

_PLACEHOLDER = ".emptyFolderPlaceholder"


class ObjectStorageSource(VideoSource):
    """Video files at the root of a public-read bucket, keyed by object name."""

    origin = Origin.STORAGE

    def __init__(
        self,
        client: Client,
        bucket: str | None = None,
        page_size: int | None = None,
        max_upload_bytes: int | None = None,
    ) -> None:
        self._client = client
        self._bucket_name = bucket or settings.storage_bucket
        self._page_size = page_size or settings.list_page_size
        self._max_upload_bytes = max_upload_bytes or settings.max_upload_bytes

    @property
    def _bucket(self):
        return self._client.storage.from_(self._bucket_name)

    def list(self) -> list[StoredObject]:
        """Newest objects first, capped at one page. Folder entries are skipped."""
        options = {
            "limit": self._page_size,
            "offset": 0,
            "sortBy": {"column": "created_at", "order": "desc"},
        }
        try:
            entries = self._bucket.list("", options)
        except Exception as e:
            raise StoreError(f"Failed to list storage files: {e}") from e

        objects = []
        for entry in entries or []:
            name = entry.get("name") or ""
            if not name or name == _PLACEHOLDER or entry.get("id") is None:
                continue
            meta = entry.get("metadata") or {}
            objects.append(StoredObject(
                id=str(entry["id"]),
                name=name,
                public_url=self.public_url(name),
                created_at=entry.get("created_at"),
                metadata=ObjectMetadata(mimetype=meta.get("mimetype"), size=meta.get("size")),
            ))
        return objects

    def public_url(self, name: str) -> str:
        """Public URL of an object. Pure string derivation, the bucket must be public-read."""
        return self._bucket.get_public_url(name)

    def upload(
        self,
        payload: UploadPayload,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> StoredObject:
        """Store a video under a timestamp-prefixed name without overwriting.

        Args:
            payload: File to store; must be video/* and within the size ceiling.
            on_progress: Called with (bytes_sent, total) while the file is read.
            cancel: Checked before each chunk and before the transfer starts.

        Raises:
            ValidationError: Wrong content type or file too large.
            UploadCancelledError: If cancel was triggered.
            StoreError: Upload failed, including a name collision.
        """
        validate_video_upload(payload, self._max_upload_bytes)

        name = f"{time.time_ns()}-{payload.filename}"
        total = payload.size or 0
        data = ProgressReader(
            payload.stream, total, on_progress, cancel, max_bytes=self._max_upload_bytes,
        ).read_all()
        if cancel is not None:
            cancel.raise_if_cancelled()

        try:
            self._bucket.upload(
                path=name,
                file=data,
                file_options={
                    "content-type": payload.content_type,
                    "cache-control": "3600",
                    "upsert": "false",
                },
            )
        except Exception as e:
            raise StoreError(f"Upload failed: {e}") from e

        logger.info("Stored %s (%d bytes)", name, len(data))
        return StoredObject(
            id=name,
            name=name,
            public_url=self.public_url(name),
            created_at=datetime.now(timezone.utc),
            metadata=ObjectMetadata(mimetype=payload.content_type, size=len(data)),
            original_name=payload.filename,
        )

    def delete(self, key: str) -> None:
        """Remove one object by name.

        Raises:
            NotFoundError: If nothing was removed.
            StoreError: If the call fails.
        """
        try:
            removed = self._bucket.remove([key])
        except Exception as e:
            raise StoreError(f"Failed to delete file: {e}") from e
        if not removed:
            raise NotFoundError(f"File not found: {key}")
        logger.info("Stored file removed: %s", key)

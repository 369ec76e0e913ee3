"""Upload payloads, validation, progress reporting and cooperative cancellation."""

import io
import logging
import os
import threading
from dataclasses import dataclass
from typing import BinaryIO, Callable

from vidshelf.errors import UploadCancelledError, ValidationError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

CHUNK_SIZE = 64 * 1024


@dataclass
class UploadPayload:
    """A file handed to one of the upload-capable sources."""

    filename: str
    content_type: str
    stream: BinaryIO
    size: int | None = None

    def __post_init__(self) -> None:
        if self.size is None and self.stream is not None:
            self.size = _measure(self.stream)

    @classmethod
    def from_bytes(cls, filename: str, content_type: str, data: bytes) -> "UploadPayload":
        return cls(filename=filename, content_type=content_type, stream=io.BytesIO(data), size=len(data))


def validate_video_upload(payload: UploadPayload | None, max_bytes: int) -> None:
    """Reject uploads that must never reach the network.

    Raises:
        ValidationError: No file, a non-video content type, or a file above max_bytes.
    """
    if payload is None or payload.stream is None or not payload.filename:
        raise ValidationError("No file provided")
    if not (payload.content_type or "").startswith("video/"):
        raise ValidationError("File must be a video")
    if payload.size is not None and payload.size > max_bytes:
        raise _too_large(max_bytes)


def _too_large(max_bytes: int) -> ValidationError:
    return ValidationError(f"File size must be less than {max_bytes // (1024 * 1024)}MB")


class CancelToken:
    """Thread-safe cancellation flag checked between upload chunks."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise UploadCancelledError("Upload was cancelled")


class ProgressReader:
    """File-like wrapper that reports bytes read and honours a cancel token.

    Works both for reading a payload into memory and as the file object of
    an httpx multipart upload, which seeks and reads it in chunks. When
    max_bytes is set, reading past it raises ValidationError, which covers
    streams whose size could not be measured up front.
    """

    def __init__(
        self,
        stream: BinaryIO,
        total: int,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
        max_bytes: int | None = None,
    ) -> None:
        self._stream = stream
        self._total = total
        self._on_progress = on_progress
        self._cancel = cancel
        self._max_bytes = max_bytes
        self._position = 0

    def read(self, size: int = -1) -> bytes:
        if self._cancel is not None:
            self._cancel.raise_if_cancelled()
        chunk = self._stream.read(size)
        if chunk:
            self._position += len(chunk)
            if self._max_bytes is not None and self._position > self._max_bytes:
                raise _too_large(self._max_bytes)
            if self._on_progress is not None:
                self._on_progress(min(self._position, self._total), self._total)
            logger.debug("Upload progress: %d / %d bytes", self._position, self._total)
        return chunk

    def read_all(self) -> bytes:
        """Read the remaining stream in chunks, reporting progress as it goes."""
        parts = []
        while True:
            chunk = self.read(CHUNK_SIZE)
            if not chunk:
                break
            parts.append(chunk)
        return b"".join(parts)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        self._position = self._stream.seek(offset, whence)
        return self._position

    def tell(self) -> int:
        return self._stream.tell()


def _measure(stream: BinaryIO) -> int | None:
    try:
        current = stream.tell()
        end = stream.seek(0, os.SEEK_END)
        stream.seek(current)
        return end - current
    except (AttributeError, OSError, io.UnsupportedOperation):
        return None

"""Media.cm hosting API client."""

import logging
from typing import Any

import httpx

from vidshelf.config import settings
from vidshelf.errors import UpstreamError, UpstreamRejectedError, ValidationError
from vidshelf.models import HostedFile, Origin
from vidshelf.sources.base import VideoSource
from vidshelf.transfer import CancelToken, ProgressCallback, ProgressReader, UploadPayload

logger = logging.getLogger(__name__)


class HostingApiSource(VideoSource):
    """Files hosted on Media.cm, keyed by file code.

    The API key travels as the ``key`` query/form parameter and is added
    only while building requests here. It is redacted from every error
    message so it can never leak into a response body.
    """

    origin = Origin.HOSTING

    def __init__(
        self,
        client: httpx.Client,
        api_key: str,
        base_url: str | None = None,
        max_upload_bytes: int | None = None,
    ) -> None:
        """Initialize the source.

        Args:
            client: HTTP client whose lifecycle belongs to the caller.
            api_key: Media.cm API key.
            base_url: API root. Defaults to settings.mediacm_base_url.
            max_upload_bytes: Size ceiling enforced while streaming an upload.
                              Defaults to settings.max_upload_bytes.
        """
        self._client = client
        self._api_key = api_key
        self._base_url = (base_url or settings.mediacm_base_url).rstrip("/")
        self._max_upload_bytes = max_upload_bytes or settings.max_upload_bytes

    def get_upload_server(self) -> str:
        """Fetch a fresh, single-use upload endpoint."""
        payload = self._call("upload/server", action="get upload server")
        server = payload.get("result")
        if not server:
            raise UpstreamError("Failed to get upload server: empty result")
        return server

    def list_payload(self) -> dict[str, Any]:
        """Raw file-list payload as returned by the API."""
        return self._call("file/list", action="get file list")

    def list(self) -> list[HostedFile]:
        """Hosted files, newest upload first."""
        result = self.list_payload().get("result") or {}
        files = [HostedFile(**f) for f in result.get("files") or [] if f.get("file_code")]
        return sorted(files, key=lambda f: f.uploaded.timestamp() if f.uploaded else 0.0, reverse=True)

    def upload_file(
        self,
        payload: UploadPayload,
        title: str | None = None,
        description: str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> dict[str, Any]:
        """Upload a file: obtain an upload server, then POST the multipart form to it.

        Raises:
            UpstreamError: If either step fails.
            ValidationError: If the stream grows past the size ceiling.
            UploadCancelledError: If cancel was triggered mid-transfer.
        """
        if cancel is not None:
            cancel.raise_if_cancelled()
        server = self.get_upload_server()

        data = {"key": self._api_key}
        if title:
            data["file_title"] = title
        if description:
            data["file_descr"] = description
        reader = ProgressReader(
            payload.stream, payload.size or 0, on_progress, cancel, max_bytes=self._max_upload_bytes,
        )
        files = {"file": (payload.filename, reader, payload.content_type)}

        try:
            response = self._client.post(server, data=data, files=files)
        except httpx.HTTPError as e:
            raise UpstreamError(self._redact(f"Upload failed: {type(e).__name__}: {e}")) from e
        result = self._decode(response, "upload file")
        logger.info("Uploaded %s to hosting API", payload.filename)
        return result

    def ingest_remote_url(self, url: str) -> dict[str, Any]:
        """Ask the hosting API to fetch a URL server-side.

        Raises:
            ValidationError: If url is empty.
        """
        url = (url or "").strip()
        if not url:
            raise ValidationError("URL is required")
        payload = self._call("upload/url", action="add video link", url=url)
        logger.info("Remote upload queued: %s", url)
        return payload

    def delete(self, key: str) -> None:
        self.delete_file(key)

    def delete_file(self, code: str) -> dict[str, Any]:
        """Delete a hosted file and return the upstream payload."""
        if not code:
            raise ValidationError("file_code is required")
        payload = self._call("file/delete", action="delete video", del_code=code)
        logger.info("Hosted file removed: %s", code)
        return payload

    def file_url(self, code: str) -> str:
        """Public watch link for a file code."""
        site = self._base_url.removesuffix("/api")
        return f"{site}/{code}"

    def _call(self, path: str, *, action: str, **params: str) -> dict[str, Any]:
        """GET an API endpoint with the key attached and check its payload status."""
        try:
            response = self._client.get(
                f"{self._base_url}/{path}",
                params={"key": self._api_key, **params},
            )
        except httpx.HTTPError as e:
            raise UpstreamError(self._redact(f"Failed to {action}: {type(e).__name__}: {e}")) from e
        return self._decode(response, action)

    def _decode(self, response: httpx.Response, action: str) -> dict[str, Any]:
        if response.status_code >= 400:
            raise UpstreamError(f"Failed to {action}: HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(f"Failed to {action}: invalid JSON response") from e
        if not isinstance(payload, dict):
            raise UpstreamError(f"Failed to {action}: unexpected response")
        if payload.get("status") != 200:
            message = payload.get("msg") or f"Failed to {action}"
            raise UpstreamRejectedError(self._redact(str(message)))
        return payload

    def _redact(self, text: str) -> str:
        if self._api_key:
            text = text.replace(self._api_key, "***")
        return text

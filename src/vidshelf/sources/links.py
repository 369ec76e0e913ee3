"""Supabase table of externally hosted video links."""

import logging

from supabase import Client

from vidshelf.config import settings
from vidshelf.errors import NotFoundError, StoreError, ValidationError
from vidshelf.models import LinkRow, Origin
from vidshelf.sources.base import VideoSource

logger = logging.getLogger(__name__)


class LinkTableSource(VideoSource):
    """Rows of ``(id, url, created_at)`` in a PostgREST table.

    The table generates ids and timestamps server-side. URL format is not
    checked here; classification happens when items are listed.
    """

    origin = Origin.LINK

    def __init__(self, client: Client, table: str | None = None) -> None:
        """Initialize the source.

        Args:
            client: Server-side Supabase client (service-role key).
            table: Table name. Defaults to settings.links_table.
        """
        self._client = client
        self._table = table or settings.links_table

    def list(self) -> list[LinkRow]:
        """All link rows, newest first."""
        try:
            response = (
                self._client.table(self._table)
                .select("*")
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            raise StoreError(f"Failed to list video links: {e}") from e
        return [LinkRow(**row) for row in response.data or []]

    def create(self, url: str) -> LinkRow:
        """Insert a link row.

        Raises:
            ValidationError: If url is empty.
            StoreError: If the insert fails.
        """
        url = (url or "").strip()
        if not url:
            raise ValidationError("URL is required")
        try:
            response = self._client.table(self._table).insert({"url": url}).execute()
        except Exception as e:
            raise StoreError(f"Failed to add video link: {e}") from e
        if not response.data:
            raise StoreError("Failed to add video link: no row returned")
        row = LinkRow(**response.data[0])
        logger.info("Link added: %s — %s", row.id, row.url)
        return row

    def delete(self, key: str) -> None:
        """Delete one row by id.

        Raises:
            NotFoundError: If no row has that id.
            StoreError: If the delete fails.
        """
        try:
            response = self._client.table(self._table).delete().eq("id", key).execute()
        except Exception as e:
            raise StoreError(f"Failed to delete video link: {e}") from e
        if not response.data:
            raise NotFoundError(f"Video link not found: {key}")
        logger.info("Link removed: %s", key)

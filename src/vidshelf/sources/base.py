"""Abstract interface shared by every video source."""

from abc import ABC, abstractmethod
from typing import Any

from vidshelf.models import Origin


class VideoSource(ABC):
    """Abstract base class defining the video source contract.

    Each concrete source wraps exactly one backing store and receives its
    client handle from the caller; it never builds or owns a global client.
    The library service depends on this abstraction only.
    """

    origin: Origin

    @abstractmethod
    def list(self) -> list[Any]:
        """Return the source's records, newest first."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Destroy one record by its source-specific key."""

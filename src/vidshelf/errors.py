"""Error taxonomy shared by the sources, the library service and the HTTP layer."""


class VidshelfError(Exception):
    """Base class for every error raised by vidshelf."""


class ValidationError(VidshelfError):
    """Raised when caller input is missing or unacceptable."""


class NotFoundError(VidshelfError):
    """Raised when a delete target does not exist in its source."""


class StoreError(VidshelfError):
    """Raised when the Supabase table or storage bucket call fails."""


class UpstreamError(VidshelfError):
    """Raised when the hosting API cannot be reached or answers with an HTTP error."""


class UpstreamRejectedError(UpstreamError):
    """Raised when the hosting API answers but reports a non-200 status in its payload."""


class UploadCancelledError(VidshelfError):
    """Raised when an in-flight upload is cancelled by its caller."""


class AggregateError(VidshelfError):
    """Raised when every active source failed during an aggregate listing."""

    def __init__(self, message: str, errors: dict[str, Exception] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or {}

"""Domain models for vidshelf."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


class Origin(str, Enum):
    """Backing source that owns a video. Member order is the listing order."""

    LINK = "link"
    STORAGE = "storage"
    HOSTING = "hosting"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Backing records, one per source ---


class LinkRow(_CamelModel):
    """A row of the external links table."""

    id: str
    url: str
    created_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value)


class ObjectMetadata(_CamelModel):
    """Subset of storage object metadata surfaced to the UI."""

    mimetype: str | None = None
    size: int | None = None


class StoredObject(_CamelModel):
    """An object in the storage bucket."""

    id: str
    name: str
    public_url: str
    created_at: datetime | None = None
    metadata: ObjectMetadata | None = None
    original_name: str | None = None


class HostedFile(BaseModel):
    """A file on the hosting API, parsed from its string-typed listing."""

    file_code: str
    title: str = ""
    link: str = ""
    thumbnail: str = ""
    canplay: bool = False
    length: int = 0  # seconds
    views: int = 0
    uploaded: datetime | None = None
    public: bool = False
    fld_id: str | None = None

    @field_validator("length", "views", mode="before")
    @classmethod
    def _lenient_int(cls, value):
        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0

    @field_validator("canplay", "public", mode="before")
    @classmethod
    def _flag(cls, value):
        return str(value).strip() not in ("", "0", "None", "False", "false")

    @field_validator("uploaded", mode="before")
    @classmethod
    def _upload_time(cls, value):
        if not value:
            return None
        if isinstance(value, str):
            try:
                return datetime.strptime(value, "%Y-%m-%d %H:%M:%S")
            except ValueError:
                return None
        return value

    @field_validator("fld_id", mode="before")
    @classmethod
    def _folder(cls, value):
        return str(value) if value not in (None, "") else None


# --- Unified items returned to the UI ---


class _VideoItemBase(_CamelModel):
    id: str
    name: str
    public_url: str
    created_at: datetime | None = None


class LinkVideo(_VideoItemBase):
    """An externally hosted video registered by URL."""

    origin: Literal[Origin.LINK] = Origin.LINK
    url: str
    platform: str = "External"
    embed_url: str | None = None
    is_embeddable: bool = True

    @computed_field(alias="isDirectVideo")
    @property
    def is_direct_video(self) -> bool:
        """Legacy flag: link rows are deleted from the table, not the bucket."""
        return True


class StorageVideo(_VideoItemBase):
    """A video file stored in the bucket."""

    origin: Literal[Origin.STORAGE] = Origin.STORAGE
    path: str
    metadata: ObjectMetadata | None = None
    original_name: str | None = None

    @computed_field(alias="isDirectVideo")
    @property
    def is_direct_video(self) -> bool:
        return False


class HostedVideo(_VideoItemBase):
    """A video on the third-party hosting service."""

    origin: Literal[Origin.HOSTING] = Origin.HOSTING
    thumbnail: str = ""
    duration: int = 0  # seconds
    views: int = 0
    can_play: bool = False
    is_public: bool = False
    folder_id: str | None = None

    @computed_field(alias="isDirectVideo")
    @property
    def is_direct_video(self) -> bool:
        return False


VideoItem = Annotated[Union[LinkVideo, StorageVideo, HostedVideo], Field(discriminator="origin")]

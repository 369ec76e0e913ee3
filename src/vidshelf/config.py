"""Configuration management for vidshelf."""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings

ALL_SOURCES = ("link", "storage", "hosting")


class Settings(BaseSettings):
    """Application settings with environment variable overrides.

    All settings can be overridden via environment variables
    prefixed with VIDSHELF_ (e.g. VIDSHELF_SUPABASE_URL, VIDSHELF_PORT).
    Secrets stay server-side and are never rendered into responses.
    """

    model_config = {"env_prefix": "VIDSHELF_"}

    # Server
    host: str = "127.0.0.1"
    port: int = 9093
    log_level: str = "INFO"

    # Supabase (links table, storage bucket, auth)
    supabase_url: str = ""
    supabase_service_role_key: SecretStr = SecretStr("")
    supabase_anon_key: SecretStr = SecretStr("")
    links_table: str = "video_links"
    storage_bucket: str = "videos"
    list_page_size: int = 100
    max_upload_bytes: int = 50 * 1024 * 1024

    # Media.cm hosting API
    mediacm_api_key: SecretStr = SecretStr("")
    mediacm_base_url: str = "https://media.cm/api"
    mediacm_timeout: float = 30.0

    # Which sources the library aggregates ("link", "storage", "hosting")
    active_sources: list[str] = Field(default_factory=lambda: ["link", "storage"])

    # Embedding
    embed_parent_host: str = "localhost"

    # Session cookies
    cookie_secure: bool = False

    @property
    def supabase_configured(self) -> bool:
        """True when the server-side Supabase client can be built."""
        return bool(self.supabase_url and self.supabase_service_role_key.get_secret_value())

    @property
    def hosting_configured(self) -> bool:
        """True when a Media.cm API key is present."""
        return bool(self.mediacm_api_key.get_secret_value())

    def configured_sources(self) -> list[str]:
        """Requested sources that have the credentials they need, in canonical order."""
        ready = []
        for name in ALL_SOURCES:
            if name not in self.active_sources:
                continue
            if name in ("link", "storage") and not self.supabase_configured:
                continue
            if name == "hosting" and not self.hosting_configured:
                continue
            ready.append(name)
        return ready


# Module-level singleton — import this throughout the app
settings = Settings()

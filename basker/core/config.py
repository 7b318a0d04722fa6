from pydantic_settings import BaseSettings, SettingsConfigDict

from basker.core.version import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    PDS_URL: str = "https://bsky.social"
    # Public reads go through a separate, unauthenticated client
    PUBLIC_PDS_URL: str = "https://bsky.social"
    COLLECTION_NAMESPACE: str = "app.basker"
    SINGLETON_RKEY: str = "self"
    LIST_PAGE_LIMIT: int = 100
    REQUEST_TIMEOUT: float = 10.0
    MAX_RETRIES: int = 3

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_SESSION_KEY: str = "basker:session:"
    SESSION_SECRET: str = "change-me"
    SESSION_TTL_SECONDS: int = 0  # 0 = never expire
    COLLECTION_CACHE_TTL_SECONDS: int = 300

    DEFAULT_HANDLE_SUFFIX: str = ".bsky.social"
    PLATFORM_VERIFIED_DIDS: list[str] = []
    ADMIN_DIDS: list[str] = []
    PLATFORM_NAME: str = "Basker"


settings = Settings()

APP_VERSION = __version__

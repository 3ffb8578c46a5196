"""Application configuration utilities."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings derived from environment variables."""

    database_url: str = Field(
        default="sqlite:///./approvals.db", alias="DATABASE_URL"
    )
    tenant_id: str | None = Field(default=None, alias="TENANT_ID")
    client_id: str | None = Field(default=None, alias="CLIENT_ID")
    client_secret: str | None = Field(default=None, alias="CLIENT_SECRET")
    graph_api_scope: str = Field(
        default="https://graph.microsoft.com/.default", alias="GRAPH_API_SCOPE"
    )
    graph_base_url: str = Field(
        default="https://graph.microsoft.com", alias="GRAPH_BASE_URL"
    )
    graph_approvals_version: str = Field(
        default="beta", alias="GRAPH_APPROVALS_VERSION"
    )
    graph_drive_version: str = Field(default="v1.0", alias="GRAPH_DRIVE_VERSION")
    frontend_url: str = Field(
        default="http://localhost:3000", alias="FRONTEND_URL"
    )
    onedrive_root_folder: str = Field(
        default="/Approvals", alias="ONEDRIVE_ROOT_FOLDER"
    )
    max_upload_files: int = Field(default=10, alias="MAX_UPLOAD_FILES")
    max_upload_bytes: int = Field(
        default=50 * 1024 * 1024, alias="MAX_UPLOAD_BYTES"
    )
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    celery_broker_url: str | None = Field(
        default=None, alias="CELERY_BROKER_URL"
    )
    celery_result_backend: str | None = Field(
        default=None, alias="CELERY_RESULT_BACKEND"
    )
    reconcile_interval_seconds: int = Field(
        default=3600, alias="RECONCILE_INTERVAL_SECONDS"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @property
    def broker_url(self) -> str:
        """Return the Celery broker URL, defaulting to Redis."""

        return self.celery_broker_url or self.redis_url

    @property
    def result_backend(self) -> str:
        """Return the Celery result backend, defaulting to the Redis URL."""

        if self.celery_result_backend:
            return self.celery_result_backend
        return self.redis_url

    @property
    def graph_credentials_configured(self) -> bool:
        """Return ``True`` when client-credential auth can be used."""

        return bool(self.tenant_id and self.client_id and self.client_secret)

    @property
    def authority(self) -> str | None:
        """Return the Azure AD authority URL for the configured tenant."""

        if not self.tenant_id:
            return None
        return f"https://login.microsoftonline.com/{self.tenant_id}"


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]

"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "IKS Audit Backend"
    debug: bool = False
    api_version: str = "v1"
    api_prefix: str = "/api/v1"

    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # ==========================================================================
    # Case-Management Boundary
    # ==========================================================================
    # Empty URL disables the boundary: fetches return no data and completion
    # reports are skipped (local development without the reporting backend).
    case_management_url: str = ""
    case_management_api_key: str = ""
    case_management_timeout: float = 10.0  # Seconds per request

    @property
    def is_case_management_configured(self) -> bool:
        """Check if the case-management boundary is reachable."""
        return bool(self.case_management_url)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""Unified settings for mimekit."""

from typing import ClassVar, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_version(distribution: str) -> str:
    """Get version from the installed package metadata."""
    try:
        import importlib.metadata

        return importlib.metadata.version(distribution)
    except Exception:
        return "0.0.0"


class Settings(BaseSettings):
    """Unified settings for the MIME engine."""

    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    NAME: ClassVar[str] = "mimekit"
    VERSION: ClassVar[str] = get_version(NAME)

    # Bodies
    DEFAULT_CHARSET: str = "utf-8"
    CHUNK_SIZE: int = Field(default=8192, gt=0)

    # Multipart
    BOUNDARY_BYTES: int = Field(default=16, ge=8)

    model_config = SettingsConfigDict(env_prefix="MIMEKIT_", env_file=".env", env_file_encoding="utf-8")


settings = Settings()  # type: ignore

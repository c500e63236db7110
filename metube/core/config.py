from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised runtime configuration for the MeTube library service."""

    model_config = SettingsConfigDict(
        env_prefix="METUBE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "MeTube"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")
    log_format: Literal["json", "console"] = Field(default="json", description="structlog renderer.")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./metube.db",
        description="SQLAlchemy compatible DSN for the video index.",
    )

    library_root: Path = Field(default_factory=lambda: Path("library"), description="Permanent video library.")
    temp_dir: Optional[Path] = Field(
        default=None,
        description="Temp area for incoming uploads (defaults to <library_root>/.incoming, same volume).",
    )
    upload_chunk_size: int = Field(default=1024 * 1024, ge=1, description="Read size for streamed uploads.")
    max_upload_size_bytes: int = Field(default=4 * 1024 * 1024 * 1024, ge=1, description="Hard upload limit.")
    temp_name_attempts: int = Field(default=16, ge=1, description="Retries when a temp name is taken.")

    ffprobe_path: str = Field(default="ffprobe")
    ffmpeg_path: str = Field(default="ffmpeg")
    probe_timeout_s: float = Field(default=60.0, gt=0)
    thumbnail_timeout_s: float = Field(default=120.0, gt=0)
    thumbnail_max_edge_px: int = Field(default=512, ge=16)
    thumbnail_quality: int = Field(default=80, ge=0, le=100, description="libwebp quality factor.")

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()

    @property
    def library_path(self) -> Path:
        return self.library_root.expanduser().resolve()

    @property
    def incoming_path(self) -> Path:
        if self.temp_dir is not None:
            return self.temp_dir.expanduser().resolve()
        return self.library_path / ".incoming"


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "METUBE_ENV": "METUBE_ENVIRONMENT",
        "METUBE_DB_URL": "METUBE_DATABASE_URL",
        "METUBE_LIBRARY": "METUBE_LIBRARY_ROOT",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value:
            os.environ[target] = value

    return Settings()


__all__ = ["Settings", "get_settings"]

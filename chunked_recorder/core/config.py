"""
Configuration settings for the recording server
"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000,"
    "http://localhost:3001,"
    "http://localhost:5173,"
    "http://localhost:5174"
)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings, read from the environment on construction"""

    def __init__(self, **overrides):
        # Storage
        self.DATA_ROOT: Path = Path(
            os.getenv("DATA_ROOT")
            or os.getenv("RAILWAY_VOLUME_MOUNT_PATH")
            or "data"
        )
        self.MAX_CHUNK_SIZE: int = int(os.getenv("MAX_CHUNK_SIZE", str(50 * 1024 * 1024)))
        self.CHUNK_INDEX_WIDTH: int = int(os.getenv("CHUNK_INDEX_WIDTH", "6"))
        self.MEDIA_EXTENSION: str = os.getenv("MEDIA_EXTENSION", ".webm")
        self.MEDIA_TYPE: str = os.getenv("MEDIA_TYPE", "video/webm")
        self.ALLOW_MISSING_CHUNKS: bool = _env_bool("ALLOW_MISSING_CHUNKS", "true")

        # HTTP
        self.CORS_ORIGINS: list[str] = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
            if origin.strip()
        ]
        self.STATIC_DIR: Path = Path(os.getenv("STATIC_DIR", "public"))

        # Server
        self.ENVIRONMENT: str = (
            os.getenv("ENVIRONMENT") or os.getenv("RAILWAY_ENVIRONMENT") or "local"
        )
        self.SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
        self.SERVER_PORT: int = int(os.getenv("SERVER_PORT") or os.getenv("PORT") or "3000")

        # Logging
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Application
        self.APP_TITLE: str = "Chunked Recording Server"
        self.APP_DESCRIPTION: str = "Chunked media upload, reassembly and range streaming"
        self.APP_VERSION: str = "1.0.0"

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)
        self.DATA_ROOT = Path(self.DATA_ROOT)

    @property
    def UPLOAD_DIR(self) -> Path:
        return self.DATA_ROOT / "uploads"

    @property
    def CHUNKS_DIR(self) -> Path:
        return self.UPLOAD_DIR / "chunks"

    @property
    def TEMP_DIR(self) -> Path:
        return self.CHUNKS_DIR / ".temp"

    @property
    def FINAL_DIR(self) -> Path:
        return self.UPLOAD_DIR / "final"

    @property
    def STORAGE_LABEL(self) -> str:
        return "Railway Volume" if os.getenv("RAILWAY_VOLUME_MOUNT_PATH") else "Local Filesystem"


settings = Settings()

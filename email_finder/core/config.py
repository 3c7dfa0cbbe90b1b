"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_GETPROSPECT_URL = "https://api.getprospect.com/public/v1/email/find"
_BACKENDS = {"memory", "postgres"}


@dataclass(frozen=True)
class Settings:
    storage_backend: str = "memory"
    database_url: str = ""
    getprospect_base_url: str = _GETPROSPECT_URL
    lookup_timeout: float = 10.0
    batch_pacing_seconds: float = 1.0
    batch_workers: int = 2
    port: int = 8080
    default_api_key: Optional[str] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    storage_backend = os.getenv("STORAGE_BACKEND", "memory").strip().lower()
    database_url = os.getenv("DATABASE_URL", "")
    getprospect_base_url = os.getenv("GETPROSPECT_BASE_URL", _GETPROSPECT_URL)
    lookup_timeout = float(os.getenv("LOOKUP_TIMEOUT_SECONDS", "10"))
    batch_pacing_seconds = float(os.getenv("BATCH_PACING_SECONDS", "1.0"))
    batch_workers = int(os.getenv("BATCH_WORKERS", "2"))
    port = int(os.getenv("PORT", "8080"))
    default_api_key = os.getenv("DEFAULT_API_KEY") or None

    if storage_backend not in _BACKENDS:
        logger.warning("Unknown STORAGE_BACKEND=%s; falling back to memory.", storage_backend)
        storage_backend = "memory"
    if storage_backend == "postgres" and not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if batch_pacing_seconds < 0:
        logger.warning("BATCH_PACING_SECONDS is negative; using 0.")
        batch_pacing_seconds = 0.0

    return Settings(
        storage_backend=storage_backend,
        database_url=database_url,
        getprospect_base_url=getprospect_base_url,
        lookup_timeout=lookup_timeout,
        batch_pacing_seconds=batch_pacing_seconds,
        batch_workers=max(1, batch_workers),
        port=port,
        default_api_key=default_api_key,
    )

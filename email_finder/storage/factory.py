"""Selects the record store configured for this process."""

import logging
from typing import Optional

from email_finder.core.config import Settings, get_settings
from email_finder.storage.base import RecordStore
from email_finder.storage.memory import MemoryStore

logger = logging.getLogger(__name__)


def build_store(settings: Optional[Settings] = None) -> RecordStore:
    """Create the configured store and seed the default API key when none is active."""
    settings = settings or get_settings()

    if settings.storage_backend == "postgres":
        from email_finder.core.db import init_schema
        from email_finder.storage.postgres import PostgresStore

        init_schema()
        store: RecordStore = PostgresStore()
    else:
        store = MemoryStore()

    if settings.default_api_key and store.get_active_api_config() is None:
        store.save_api_config({"api_key": settings.default_api_key})
        logger.info("Seeded active API config from DEFAULT_API_KEY")

    logger.info("Using %s record store", store.name)
    return store

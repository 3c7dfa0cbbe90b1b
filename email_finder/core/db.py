"""Database helpers for the PostgreSQL record store."""

import logging
from contextlib import contextmanager
from typing import Optional

from psycopg2 import pool

from email_finder.core.config import get_settings

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.AbstractConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.AbstractConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        # Batch workers and request threads share the pool.
        _connection_pool = pool.ThreadedConnectionPool(
            minconn,
            max(maxconn, settings.batch_workers + 2),
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS email_searches (
    id varchar PRIMARY KEY,
    first_name text NOT NULL,
    last_name text NOT NULL,
    company text NOT NULL,
    email text,
    confidence integer,
    title text,
    domain text,
    full_name text,
    industry text,
    website text,
    company_size text,
    country text,
    city text,
    email_status text,
    status text NOT NULL,
    error_message text,
    search_type text NOT NULL,
    batch_id text,
    created_at timestamptz NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS email_searches_batch_id_idx ON email_searches (batch_id);
CREATE INDEX IF NOT EXISTS email_searches_created_at_idx ON email_searches (created_at DESC);

CREATE TABLE IF NOT EXISTS batch_jobs (
    id varchar PRIMARY KEY,
    file_name text NOT NULL,
    total_records integer NOT NULL,
    processed_records integer NOT NULL DEFAULT 0,
    successful_records integer NOT NULL DEFAULT 0,
    status text NOT NULL,
    created_at timestamptz NOT NULL DEFAULT now(),
    completed_at timestamptz
);

CREATE TABLE IF NOT EXISTS api_config (
    id varchar PRIMARY KEY,
    api_key text NOT NULL,
    is_active text NOT NULL DEFAULT 'true',
    created_at timestamptz NOT NULL DEFAULT now()
);

CREATE UNIQUE INDEX IF NOT EXISTS api_config_single_active_idx
    ON api_config (is_active) WHERE is_active = 'true';
"""


def init_schema() -> None:
    """Create the tables used by the record store if they are missing."""
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        conn.commit()
    logger.info("Database schema ensured")

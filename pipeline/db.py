"""Database layer for blob storage of index artifacts in PostgreSQL."""

import os
from contextlib import contextmanager

import psycopg


def get_connection_string() -> str:
    """Get database connection string from environment."""
    return os.environ.get(
        "DATABASE_URL",
        "postgresql://localhost:5432/master_games?user=postgres&password=postgres",
    )


@contextmanager
def get_connection(conninfo: str | None = None):
    """Context manager for database connections."""
    conn = psycopg.connect(conninfo or get_connection_string())
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def ensure_blob_table(conn: psycopg.Connection) -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS blobs (
                key TEXT PRIMARY KEY,
                data BYTEA NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )


def get_blob(conn: psycopg.Connection, key: str) -> bytes | None:
    """Fetch a blob by key. Returns None if absent."""
    with conn.cursor() as cur:
        cur.execute("SELECT data FROM blobs WHERE key = %s", (key,))
        row = cur.fetchone()
    if not row:
        return None
    return bytes(row[0])


def upsert_blob(conn: psycopg.Connection, key: str, data: bytes) -> None:
    """Insert or replace a blob. Uses key as conflict key."""
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO blobs (key, data) VALUES (%s, %s)
            ON CONFLICT (key) DO UPDATE SET
                data = EXCLUDED.data,
                updated_at = NOW()
            """,
            (key, data),
        )

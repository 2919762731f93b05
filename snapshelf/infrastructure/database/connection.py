"""Async database connection management for the shared media index.

Provides async database connectivity using aiosqlite.
"""
import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA = (
    # Media records; pending rows have no published data yet
    """
    CREATE TABLE IF NOT EXISTS media (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        display_name TEXT NOT NULL,
        mime_type TEXT NOT NULL,
        width INTEGER,
        height INTEGER,
        owner TEXT NOT NULL,
        data_path TEXT NOT NULL,
        is_pending BOOLEAN DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_media_display_name
        ON media(display_name, id)
    """,
    # Per-URI access grants handed out by an approved consent flow
    """
    CREATE TABLE IF NOT EXISTS uri_grants (
        media_id INTEGER NOT NULL,
        grantee TEXT NOT NULL,
        granted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (media_id, grantee),
        FOREIGN KEY (media_id) REFERENCES media(id) ON DELETE CASCADE
    )
    """,
    # Outstanding consent requests (one token may cover several records)
    """
    CREATE TABLE IF NOT EXISTS consent_requests (
        token TEXT NOT NULL,
        kind TEXT NOT NULL CHECK(kind IN ('recoverable', 'delete_request')),
        media_id INTEGER NOT NULL,
        requester TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (token, media_id)
    )
    """,
)


async def connect(db_path: Path) -> aiosqlite.Connection:
    """Open a connection to the media index database.

    Args:
        db_path: Path of the SQLite file (created if missing)

    Returns:
        Connection with row factory set to aiosqlite.Row
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys=ON")
    return conn


async def init_schema(conn: aiosqlite.Connection) -> None:
    """Create media index tables if they don't exist."""
    for statement in SCHEMA:
        await conn.execute(statement)
    await conn.commit()
    logger.debug("Media index schema ready")

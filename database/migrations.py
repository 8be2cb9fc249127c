"""Database schema migrations."""

from __future__ import annotations

import sqlite3

from core.logger import get_logger
from .connection import SQLitePool

logger = get_logger(__name__)

_NOW = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"

SCHEMA_SQL: tuple[str, ...] = (
    f"""
    CREATE TABLE IF NOT EXISTS profiles (
        id TEXT PRIMARY KEY,
        handle TEXT UNIQUE NOT NULL,
        display_name TEXT,
        bio TEXT,
        badges TEXT NOT NULL DEFAULT '[]',
        is_public INTEGER NOT NULL DEFAULT 1,
        comments_enabled INTEGER NOT NULL DEFAULT 1,
        is_banned INTEGER NOT NULL DEFAULT 0,
        profile_effect TEXT NOT NULL DEFAULT 'none',
        background_effect TEXT NOT NULL DEFAULT 'none',
        theme TEXT NOT NULL DEFAULT 'default',
        template TEXT NOT NULL DEFAULT 'classic',
        layout TEXT NOT NULL DEFAULT 'stack',
        discord_presence_enabled INTEGER NOT NULL DEFAULT 0,
        discord_user_id TEXT UNIQUE,
        created_at TEXT NOT NULL DEFAULT {_NOW},
        updated_at TEXT NOT NULL DEFAULT {_NOW}
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_profiles_created_at ON profiles(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_profiles_discord_user_id ON profiles(discord_user_id);",
    """
    CREATE TABLE IF NOT EXISTS admin_users (
        user_id TEXT PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS links (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        url TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS music_tracks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        title TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS widgets (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        kind TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS comments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        body TEXT
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_links_user ON links(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_music_tracks_user ON music_tracks(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_widgets_user ON widgets(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_comments_user ON comments(user_id);",
    """
    CREATE TABLE IF NOT EXISTS analytics_daily (
        user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        day TEXT NOT NULL,
        profile_views INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (user_id, day)
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS sync_state (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TEXT NOT NULL DEFAULT {_NOW}
    );
    """,
)

# Columns added after the first release; older databases get them on startup.
ADDED_COLUMNS: tuple[tuple[str, str], ...] = (
    ("profiles", "discord_presence_enabled INTEGER NOT NULL DEFAULT 0"),
    ("profiles", "discord_user_id TEXT"),
    ("profiles", "badges TEXT NOT NULL DEFAULT '[]'"),
)


async def run_migrations(pool: SQLitePool) -> None:
    async with pool.connection() as conn:
        await conn.execute("BEGIN")
        try:
            for statement in SCHEMA_SQL:
                await conn.execute(statement)

            for table, column in ADDED_COLUMNS:
                try:
                    await conn.execute(f"ALTER TABLE {table} ADD COLUMN {column}")
                except sqlite3.OperationalError as e:
                    if "duplicate column" not in str(e).lower():
                        raise
        except Exception:
            await conn.rollback()
            raise
        else:
            await conn.commit()

    logger.info("Database migrations applied")

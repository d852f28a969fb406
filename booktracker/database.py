import json
import logging
import os
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from booktracker.config import settings

logger = logging.getLogger(__name__)

# Default database file; components may pass their own path instead.
DATABASE_FILE = settings.database_file


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database with rows addressable by column name."""
    conn = sqlite3.connect(db_file or DATABASE_FILE)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def new_identifier() -> str:
    """Return a fresh record identifier (32 lowercase hex characters)."""
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the tables if they do not exist yet."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                genre TEXT,
                description TEXT,
                year INTEGER,
                available INTEGER NOT NULL DEFAULT 1,
                borrow_name TEXT,
                borrow_department TEXT,
                borrow_section TEXT,
                borrow_date TEXT,
                version INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                username TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_author ON books(author)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_available ON books(available)")
        conn.commit()
    finally:
        conn.close()


def _legacy_row(item: Dict[str, Any], now: str) -> Optional[tuple]:
    """Turn one record of the legacy flat file into a books row, or None if unusable."""
    title = str(item.get("title") or "").strip()
    author = str(item.get("author") or "").strip()
    if not title or not author:
        return None

    year = item.get("year")
    try:
        year = int(year) if year not in (None, "") else None
    except (TypeError, ValueError):
        year = None

    info = item.get("borrowInfo") or {}
    borrowed = item.get("available") is False and all(
        info.get(k) for k in ("name", "department", "section", "borrowDate")
    )
    if borrowed:
        borrow = (info["name"], info["department"], info["section"], str(info["borrowDate"])[:10])
    else:
        # A record that is not fully borrowed comes back as available.
        borrow = (None, None, None, None)

    return (
        new_identifier(), title, author, item.get("genre"), item.get("description"), year,
        0 if borrowed else 1, *borrow, now, now,
    )


def migrate_from_json(db_file: Optional[str] = None, json_file: Optional[str] = None) -> int:
    """Import books from the legacy flat JSON store into SQLite.

    This is a one-time operation: it only runs while the books table is empty
    and the JSON file exists. Returns the number of imported books.
    """
    if not json_file or not os.path.exists(json_file):
        return 0

    conn = get_db_connection(db_file)
    try:
        book_count = conn.execute("SELECT COUNT(*) FROM books").fetchone()[0]
        if book_count > 0:
            return 0

        try:
            with open(json_file, "r", encoding="utf-8") as f:
                data: List[Dict[str, Any]] = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.error("Could not read legacy book file %s: %s", json_file, e)
            return 0

        now = utc_now()
        rows = []
        for item in data if isinstance(data, list) else []:
            row = _legacy_row(item, now) if isinstance(item, dict) else None
            if row is None:
                logger.warning("Skipping invalid legacy book record: %r", item)
                continue
            rows.append(row)

        if rows:
            conn.executemany("""
                INSERT INTO books (
                    id, title, author, genre, description, year, available,
                    borrow_name, borrow_department, borrow_section, borrow_date,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, rows)
            conn.commit()
        logger.info("Imported %d books from %s", len(rows), json_file)
        return len(rows)
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None, json_file: Optional[str] = None) -> None:
    """Create the tables when needed and import legacy data."""
    create_tables(db_file)
    migrate_from_json(db_file, json_file)


def ping(db_file: Optional[str] = None) -> bool:
    """Return True if the database answers a trivial query."""
    try:
        conn = get_db_connection(db_file)
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()
        return True
    except sqlite3.Error:
        return False

"""SQLite-backed repositories for books and users.

The repositories are dumb stores: they merge and persist what they are given
and do not enforce lending rules. Those belong to ``booktracker.library``.
"""

import logging
import sqlite3
from functools import wraps
from typing import Any, Dict, List, Optional

from booktracker.book import Book, BorrowInfo
from booktracker.database import get_db_connection, new_identifier, utc_now
from booktracker.errors import Conflict, Internal, NotFound
from booktracker.user import User
from booktracker.validators import IdentifierValidator

logger = logging.getLogger(__name__)

BOOK_COLUMNS = """
    id, title, author, genre, description, year, available,
    borrow_name, borrow_department, borrow_section, borrow_date,
    version, created_at, updated_at
"""

# Book attributes that may be written through update(), mapped to columns.
UPDATABLE_FIELDS = ("title", "author", "genre", "description", "year", "available")


def translate_db_errors(func):
    """Report low level sqlite failures as Internal errors."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except sqlite3.Error as e:
            logger.exception("Database failure in %s", func.__name__)
            raise Internal("Database operation failed") from e
    return wrapper


def _borrow_columns(info: Optional[BorrowInfo]) -> Dict[str, Any]:
    if info is None:
        return {"borrow_name": None, "borrow_department": None, "borrow_section": None, "borrow_date": None}
    return {
        "borrow_name": info.name,
        "borrow_department": info.department,
        "borrow_section": info.section,
        "borrow_date": info.borrow_date.isoformat(),
    }


class BookRepository:
    """Book persistence: create, read, merge-update and hard delete."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file

    def _connect(self) -> sqlite3.Connection:
        return get_db_connection(self.db_file)

    def _fetch(self, conn: sqlite3.Connection, book_id: str) -> Optional[Book]:
        row = conn.execute(f"SELECT {BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)).fetchone()
        return Book.from_row(dict(row)) if row else None

    @translate_db_errors
    def create(self, draft: Dict[str, Any]) -> Book:
        """Store a new book. It always starts available with no borrow info."""
        now = utc_now()
        book_id = new_identifier()
        conn = self._connect()
        try:
            conn.execute("""
                INSERT INTO books (id, title, author, genre, description, year, available, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 1, 1, ?, ?)
            """, (
                book_id, draft["title"], draft["author"], draft.get("genre"),
                draft.get("description"), draft.get("year"), now, now,
            ))
            conn.commit()
            return self._fetch(conn, book_id)
        finally:
            conn.close()

    @translate_db_errors
    def get_all(self, query: Optional[str] = None) -> List[Book]:
        conn = self._connect()
        try:
            if query:
                escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
                pattern = f"%{escaped}%"
                cursor = conn.execute(f"""
                    SELECT {BOOK_COLUMNS} FROM books
                    WHERE title LIKE ? ESCAPE '\\'
                       OR author LIKE ? ESCAPE '\\'
                       OR genre LIKE ? ESCAPE '\\'
                    ORDER BY created_at, title
                """, (pattern, pattern, pattern))
            else:
                cursor = conn.execute(f"SELECT {BOOK_COLUMNS} FROM books ORDER BY created_at, title")
            return [Book.from_row(dict(row)) for row in cursor.fetchall()]
        finally:
            conn.close()

    @translate_db_errors
    def get_by_id(self, book_id: str) -> Book:
        IdentifierValidator.ensure_valid(book_id)
        conn = self._connect()
        try:
            book = self._fetch(conn, book_id)
        finally:
            conn.close()
        if book is None:
            raise NotFound("Book not found")
        return book

    @translate_db_errors
    def update(self, book_id: str, fields: Dict[str, Any], expected_version: Optional[int] = None) -> Book:
        """Merge ``fields`` into the stored book and return the new record.

        ``fields`` may hold any of UPDATABLE_FIELDS plus ``borrow_info``
        (a BorrowInfo or None). When ``expected_version`` is given the write
        only happens if the stored version still matches, otherwise Conflict.
        """
        IdentifierValidator.ensure_valid(book_id)

        columns: Dict[str, Any] = {}
        for name in UPDATABLE_FIELDS:
            if name in fields:
                value = fields[name]
                columns[name] = int(value) if name == "available" else value
        if "borrow_info" in fields:
            columns.update(_borrow_columns(fields["borrow_info"]))
        columns["updated_at"] = utc_now()

        set_clause = ", ".join(f"{column} = ?" for column in columns)
        sql = f"UPDATE books SET {set_clause}, version = version + 1 WHERE id = ?"
        params: List[Any] = list(columns.values()) + [book_id]
        if expected_version is not None:
            sql += " AND version = ?"
            params.append(expected_version)

        conn = self._connect()
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
            if cursor.rowcount == 0:
                if self._fetch(conn, book_id) is None:
                    raise NotFound("Book not found")
                raise Conflict("Book was modified by another request, please retry")
            return self._fetch(conn, book_id)
        finally:
            conn.close()

    @translate_db_errors
    def delete(self, book_id: str) -> Book:
        IdentifierValidator.ensure_valid(book_id)
        conn = self._connect()
        try:
            book = self._fetch(conn, book_id)
            if book is None:
                raise NotFound("Book not found")
            conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
            conn.commit()
            return book
        finally:
            conn.close()

    @translate_db_errors
    def count(self, available: Optional[bool] = None) -> int:
        conn = self._connect()
        try:
            if available is None:
                return conn.execute("SELECT COUNT(*) FROM books").fetchone()[0]
            return conn.execute(
                "SELECT COUNT(*) FROM books WHERE available = ?", (int(available),)
            ).fetchone()[0]
        finally:
            conn.close()


class UserRepository:
    """User persistence. Users are created once and then only read."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file

    def _connect(self) -> sqlite3.Connection:
        return get_db_connection(self.db_file)

    @translate_db_errors
    def create(self, username: str, password_hash: str) -> User:
        user = User(id=new_identifier(), username=username, password_hash=password_hash, created_at=utc_now())
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO users (id, username, password_hash, created_at) VALUES (?, ?, ?, ?)",
                (user.id, user.username, user.password_hash, user.created_at),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise Conflict("User already exists") from e
        finally:
            conn.close()
        return user

    @translate_db_errors
    def find_by_username(self, username: str) -> Optional[User]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, username, password_hash, created_at FROM users WHERE username = ?", (username,)
            ).fetchone()
            return User.from_row(dict(row)) if row else None
        finally:
            conn.close()

    @translate_db_errors
    def get_by_id(self, user_id: str) -> Optional[User]:
        if not IdentifierValidator.is_valid(user_id):
            return None
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id, username, password_hash, created_at FROM users WHERE id = ?", (user_id,)
            ).fetchone()
            return User.from_row(dict(row)) if row else None
        finally:
            conn.close()

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional


class BorrowInfo:
    """Who holds a borrowed book and since when."""

    def __init__(self, name: str, department: str, section: str, borrow_date: date) -> None:
        self.name = name
        self.department = department
        self.section = section
        self.borrow_date = borrow_date

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BorrowInfo):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"BorrowInfo({self.name!r}, {self.department!r}, {self.section!r}, {self.borrow_date!r})"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "department": self.department,
            "section": self.section,
            "borrowDate": self.borrow_date.isoformat(),
        }

    @staticmethod
    def from_row(row: Dict[str, Any]) -> Optional["BorrowInfo"]:
        if not row.get("borrow_date"):
            return None
        return BorrowInfo(
            name=row["borrow_name"],
            department=row["borrow_department"],
            section=row["borrow_section"],
            borrow_date=date.fromisoformat(row["borrow_date"]),
        )


class Book:
    """A single book in the library and its lending state."""

    def __init__(self, id: str, title: str, author: str, genre: str | None = None,
                 description: str | None = None, year: int | None = None, available: bool = True,
                 borrow_info: BorrowInfo | None = None, version: int = 1,
                 created_at: str | None = None, updated_at: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip()
        self.genre = genre
        self.description = description
        self.year = year
        self.available = available
        self.borrow_info = borrow_info
        self.version = version
        self.created_at = created_at
        self.updated_at = updated_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.id})"

    @property
    def is_borrowed(self) -> bool:
        return self.borrow_info is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "genre": self.genre,
            "description": self.description,
            "year": self.year,
            "available": self.available,
            "borrowInfo": self.borrow_info.to_dict() if self.borrow_info else None,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @staticmethod
    def from_row(row: Dict[str, Any]) -> "Book":
        """Build a Book from a row of the books table."""
        return Book(
            id=row["id"],
            title=row["title"],
            author=row["author"],
            genre=row.get("genre"),
            description=row.get("description"),
            year=row.get("year"),
            available=bool(row["available"]),
            borrow_info=BorrowInfo.from_row(row),
            version=row.get("version", 1),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

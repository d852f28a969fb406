import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from booktracker.book import Book, BorrowInfo
from booktracker.config import Settings, settings
from booktracker.database import initialize_database
from booktracker.errors import Conflict, ValidationError
from booktracker.repository import BookRepository
from booktracker.validators import DateValidator, TextValidator, parse_year

logger = logging.getLogger(__name__)

BORROWER_FIELDS = ("name", "department", "section", "borrowDate")

# Client keys accepted by edit_book, mapped to Book attributes.
EDITABLE_FIELDS = {
    "title": "title",
    "author": "author",
    "genre": "genre",
    "description": "description",
    "year": "year",
    "available": "available",
    "borrowInfo": "borrow_info",
}


@dataclass
class LifecycleResult:
    """What a mutation produced: the stored book and a message for the caller."""

    book: Book
    message: str
    fine: int = 0
    days_borrowed: Optional[int] = None

    def to_dict(self) -> dict:
        payload = {"message": self.message, "book": self.book.to_dict()}
        if self.days_borrowed is not None:
            payload["fine"] = self.fine
            payload["daysBorrowed"] = self.days_borrowed
        return payload


class Library:
    """Manages the book collection and the available/borrowed lifecycle."""

    def __init__(self, db_file: Optional[str] = None, config: Optional[Settings] = None,
                 repository: Optional[BookRepository] = None) -> None:
        self.settings = config or settings
        if repository is None:
            db_file = db_file or self.settings.database_file
            initialize_database(db_file, self.settings.legacy_books_file)
            repository = BookRepository(db_file)
        self.repository = repository

    # ------------------------- Queries ------------------------- #
    def list_books(self, query: Optional[str] = None) -> List[Book]:
        query = TextValidator.optional(query)
        return self.repository.get_all(query)

    def get_book(self, book_id: str) -> Book:
        return self.repository.get_by_id(book_id)

    def get_statistics(self) -> Dict[str, int]:
        total = self.repository.count()
        available = self.repository.count(available=True)
        return {
            "total_books": total,
            "available_books": available,
            "borrowed_books": total - available,
        }

    # ------------------------- Core operations ------------------------- #
    def add_book(self, draft: Dict[str, Any]) -> LifecycleResult:
        """Validate a draft and store it as a new, available book."""
        clean = {
            "title": TextValidator.require(draft.get("title"), "title"),
            "author": TextValidator.require(draft.get("author"), "author"),
            "genre": TextValidator.optional(draft.get("genre")),
            "description": TextValidator.optional(draft.get("description")),
            "year": parse_year(draft.get("year")),
        }
        book = self.repository.create(clean)
        logger.info("Added book %s (%s)", book.id, book.title)
        return LifecycleResult(book, "Book added successfully")

    def edit_book(self, book_id: str, fields: Dict[str, Any]) -> LifecycleResult:
        """Overwrite any provided fields, lending state included.

        The merged record must still satisfy ``available == (borrowInfo is None)``.
        """
        changes: Dict[str, Any] = {}
        for key, attr in EDITABLE_FIELDS.items():
            if key not in fields:
                continue
            value = fields[key]
            if key in ("title", "author"):
                value = TextValidator.require(value, key)
            elif key in ("genre", "description"):
                value = TextValidator.optional(value)
            elif key == "year":
                value = parse_year(value)
            elif key == "available":
                if not isinstance(value, bool):
                    raise ValidationError("available must be a boolean")
            elif key == "borrowInfo":
                value = self._parse_borrower(value) if value is not None else None
            changes[attr] = value

        current = self.repository.get_by_id(book_id)
        available = changes.get("available", current.available)
        borrow_info = changes["borrow_info"] if "borrow_info" in changes else current.borrow_info
        if available != (borrow_info is None):
            raise ValidationError("available must be false exactly when borrowInfo is set")

        book = self.repository.update(book_id, changes, expected_version=current.version)
        logger.info("Updated book %s fields=%s", book.id, sorted(changes))
        return LifecycleResult(book, "Book updated successfully")

    def borrow_book(self, book_id: str, borrower: Optional[Dict[str, Any]]) -> LifecycleResult:
        """Mark a book as borrowed by ``borrower`` (name, department, section, borrowDate)."""
        info = self._parse_borrower(borrower)
        current = self.repository.get_by_id(book_id)
        if current.is_borrowed:
            if self.settings.strict_lifecycle:
                raise Conflict("Book is already borrowed")
            logger.warning("Book %s borrowed again while already borrowed by %s", book_id, current.borrow_info.name)

        book = self.repository.update(
            book_id, {"available": False, "borrow_info": info}, expected_version=current.version
        )
        logger.info("Book %s borrowed by %s on %s", book.id, info.name, info.borrow_date)
        return LifecycleResult(book, "Book borrowed successfully")

    def return_book(self, book_id: str, return_date: Any) -> LifecycleResult:
        """Make a book available again and compute the late fine, if any.

        Returning a book that is not borrowed produces no fine.
        """
        returned_on = DateValidator.parse(return_date, "returnDate")
        current = self.repository.get_by_id(book_id)

        fine = 0
        days_borrowed = None
        message = "Book returned successfully"
        if current.is_borrowed:
            borrowed_on = current.borrow_info.borrow_date
            if returned_on < borrowed_on:
                raise ValidationError("returnDate cannot be earlier than borrowDate")
            days_borrowed = self.days_between(borrowed_on, returned_on)
            fine = self.calculate_fine(days_borrowed)
            if fine:
                message = f"Book returned late: kept {days_borrowed} days, fine due {fine}"
        elif self.settings.strict_lifecycle:
            raise Conflict("Book is not borrowed")
        else:
            logger.warning("Book %s returned while not borrowed", book_id)

        book = self.repository.update(
            book_id, {"available": True, "borrow_info": None}, expected_version=current.version
        )
        logger.info("Book %s returned on %s (fine=%d)", book.id, returned_on, fine)
        return LifecycleResult(book, message, fine=fine, days_borrowed=days_borrowed)

    def delete_book(self, book_id: str) -> LifecycleResult:
        book = self.repository.delete(book_id)
        logger.info("Deleted book %s (%s)", book.id, book.title)
        return LifecycleResult(book, "Book deleted successfully")

    # ------------------------- Fines ------------------------- #
    @staticmethod
    def days_between(start: date, end: date) -> int:
        """Whole days from ``start`` to ``end``; calendar dates need no rounding."""
        return (end - start).days

    def calculate_fine(self, days_borrowed: int) -> int:
        """Flat per-day fine for every day past the grace period."""
        overdue = days_borrowed - self.settings.grace_period_days
        if overdue <= 0:
            return 0
        return overdue * self.settings.fine_per_day

    # ------------------------- Helpers ------------------------- #
    @staticmethod
    def _parse_borrower(borrower: Any) -> BorrowInfo:
        if not isinstance(borrower, dict) or any(TextValidator.is_blank(borrower.get(k)) for k in BORROWER_FIELDS):
            raise ValidationError("Borrower information is incomplete.")
        return BorrowInfo(
            name=str(borrower["name"]).strip(),
            department=str(borrower["department"]).strip(),
            section=str(borrower["section"]).strip(),
            borrow_date=DateValidator.parse(borrower["borrowDate"], "borrowDate"),
        )

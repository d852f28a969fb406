import re
from datetime import date, datetime
from typing import Any, Optional

from booktracker.errors import InvalidIdentifier, ValidationError

IDENTIFIER_PATTERN = re.compile(r"^[0-9a-f]{32}$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}")


class IdentifierValidator:
    """Shape checks for record identifiers."""

    @staticmethod
    def is_valid(identifier: Optional[str]) -> bool:
        return bool(identifier) and bool(IDENTIFIER_PATTERN.match(identifier))

    @staticmethod
    def ensure_valid(identifier: Optional[str]) -> str:
        if not IdentifierValidator.is_valid(identifier):
            raise InvalidIdentifier("Invalid book ID format")
        return identifier


class TextValidator:
    """Text checks used by the lifecycle and auth services."""

    @staticmethod
    def is_blank(text: Any) -> bool:
        return text is None or not str(text).strip()

    @staticmethod
    def require(text: Any, field: str) -> str:
        """Return the trimmed text or raise ValidationError if it is empty."""
        if TextValidator.is_blank(text):
            raise ValidationError(f"{field} is required")
        return str(text).strip()

    @staticmethod
    def optional(text: Any) -> Optional[str]:
        if text is None:
            return None
        cleaned = str(text).strip()
        return cleaned or None


class DateValidator:
    """Accepts calendar dates (YYYY-MM-DD) and ISO timestamps, keeping only the date part."""

    @staticmethod
    def parse(value: Any, field: str) -> date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if TextValidator.is_blank(value):
            raise ValidationError(f"{field} is required")
        text = str(value).strip()
        if not DATE_PATTERN.match(text):
            raise ValidationError(f"{field} must be a date in YYYY-MM-DD format")
        try:
            return date.fromisoformat(text[:10])
        except ValueError as e:
            raise ValidationError(f"{field} is not a valid date") from e


def parse_year(value: Any) -> Optional[int]:
    """Coerce an optional publication year to int."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError("year must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("year must be an integer") from e

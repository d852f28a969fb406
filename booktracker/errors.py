"""Error types raised by the services and translated to HTTP responses by the API."""

from http import HTTPStatus


class LibraryError(Exception):
    """Base class for every error the services report to callers."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LibraryError):
    """Missing or malformed input."""

    status_code = HTTPStatus.BAD_REQUEST


class InvalidIdentifier(LibraryError):
    """Identifier does not have the shape the store uses."""

    status_code = HTTPStatus.BAD_REQUEST


class Unauthorized(LibraryError):
    status_code = HTTPStatus.UNAUTHORIZED


class NotFound(LibraryError):
    status_code = HTTPStatus.NOT_FOUND


class Conflict(LibraryError):
    """Duplicate username, lifecycle clash or a stale version on update."""

    status_code = HTTPStatus.CONFLICT


class Internal(LibraryError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR

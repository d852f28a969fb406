from __future__ import annotations

from typing import Any, Dict


class User:
    """An account that may obtain session tokens. The password is only kept hashed."""

    def __init__(self, id: str, username: str, password_hash: str, created_at: str | None = None) -> None:
        self.id = id
        self.username = username
        self.password_hash = password_hash
        self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"<User {self.username}>"

    def public_view(self) -> dict:
        """User fields that are safe to send to clients."""
        return {"id": self.id, "username": self.username, "createdAt": self.created_at}

    @staticmethod
    def from_row(row: Dict[str, Any]) -> "User":
        return User(
            id=row["id"],
            username=row["username"],
            password_hash=row["password_hash"],
            created_at=row.get("created_at"),
        )

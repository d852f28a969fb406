"""Registration, credential checks and stateless session tokens.

Passwords are stored as salted bcrypt hashes. Sessions are HS256 JWTs that
carry the user's id and expire after ``settings.jwt_expiration_minutes``; they
are not stored server side and cannot be revoked before they expire.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from booktracker.config import Settings, settings
from booktracker.database import create_tables
from booktracker.errors import Unauthorized, ValidationError
from booktracker.repository import UserRepository
from booktracker.user import User
from booktracker.validators import TextValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """The authenticated caller of a request, handed to handlers explicitly."""

    user_id: str
    username: str
    token: str

    def to_dict(self) -> dict:
        return {"id": self.user_id, "username": self.username, "token": self.token}


class AuthService:
    def __init__(self, db_file: Optional[str] = None, config: Optional[Settings] = None,
                 repository: Optional[UserRepository] = None) -> None:
        self.settings = config or settings
        if repository is None:
            db_file = db_file or self.settings.database_file
            create_tables(db_file)
            repository = UserRepository(db_file)
        self.users = repository

    # ------------------------- Passwords ------------------------- #
    def hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.settings.bcrypt_rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def check_password(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Stored value is not a bcrypt hash.
            return False

    # ------------------------- Accounts ------------------------- #
    def register(self, username: Optional[str], password: Optional[str]) -> User:
        """Create an account. Raises ValidationError or Conflict (username taken)."""
        if TextValidator.is_blank(username) or not password:
            raise ValidationError("Please enter all fields")
        username = username.strip()
        if len(username) < self.settings.min_username_length:
            raise ValidationError(
                f"Username must be at least {self.settings.min_username_length} characters"
            )
        if len(password) < self.settings.min_password_length:
            raise ValidationError(
                f"Password must be at least {self.settings.min_password_length} characters"
            )
        if len(password.encode("utf-8")) > self.settings.max_password_bytes:
            raise ValidationError(
                f"Password must be at most {self.settings.max_password_bytes} bytes"
            )

        user = self.users.create(username, self.hash_password(password))
        logger.info("Registered user %s (%s)", user.username, user.id)
        return user

    def login(self, username: Optional[str], password: Optional[str]) -> Session:
        """Check credentials and open a session. Raises Unauthorized on mismatch."""
        if TextValidator.is_blank(username) or not password:
            raise ValidationError("Please enter all fields")
        user = self.users.find_by_username(username.strip())
        too_long = len(password.encode("utf-8")) > self.settings.max_password_bytes
        if user is None or too_long or not self.check_password(password, user.password_hash):
            logger.warning("Failed login for %r", username)
            raise Unauthorized("Invalid username or password")
        logger.info("User %s logged in", user.username)
        return self.open_session(user)

    def open_session(self, user: User) -> Session:
        return Session(user_id=user.id, username=user.username, token=self.issue_token(user.id))

    def get_user(self, user_id: str) -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise Unauthorized("Not authorized, user not found")
        return user

    # ------------------------- Tokens ------------------------- #
    def issue_token(self, user_id: str, now: Optional[datetime] = None) -> str:
        issued = now or datetime.now(timezone.utc)
        payload = {
            "id": user_id,
            "sub": user_id,
            "iat": issued,
            "exp": issued + timedelta(minutes=self.settings.jwt_expiration_minutes),
        }
        return jwt.encode(payload, self.settings.jwt_secret_key, algorithm=self.settings.jwt_algorithm)

    def verify_token(self, token: Optional[str]) -> str:
        """Return the user id carried by a valid token, or raise Unauthorized."""
        if not token:
            raise Unauthorized("Not authorized, no token")
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            logger.warning("Rejected expired token")
            raise Unauthorized("Not authorized, token expired") from e
        except jwt.InvalidTokenError as e:
            logger.warning("Rejected invalid token: %s", e)
            raise Unauthorized("Not authorized, token failed") from e
        return payload["sub"]

    def authenticate(self, token: Optional[str]) -> Session:
        """Resolve a bearer token to a Session for the user it names."""
        user = self.get_user(self.verify_token(token))
        return Session(user_id=user.id, username=user.username, token=token)

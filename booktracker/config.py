import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: List[str] = field(default_factory=lambda: _env_list("CORS_ORIGINS", "http://localhost:5173"))
    public_book_list: bool = _env_bool("PUBLIC_BOOK_LIST", "True")

    # Storage settings
    database_file: str = os.getenv("LIBRARY_DB_FILE", "library.db")
    legacy_books_file: Optional[str] = os.getenv("LEGACY_BOOKS_FILE", "books.json")

    # Security settings
    jwt_secret_key: str = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-this-in-production")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_expiration_minutes: int = int(os.getenv("JWT_EXPIRATION_MINUTES", "60"))  # 1 hour
    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "10"))
    min_username_length: int = 3
    min_password_length: int = 6
    # bcrypt only reads the first 72 bytes of a password
    max_password_bytes: int = 72

    # Lending rules
    grace_period_days: int = int(os.getenv("GRACE_PERIOD_DAYS", "15"))
    fine_per_day: int = int(os.getenv("FINE_PER_DAY", "10"))
    strict_lifecycle: bool = _env_bool("STRICT_LIFECYCLE", "False")

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Book Tracker API")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_bool("DEBUG", "False")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()

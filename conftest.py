import pytest

from booktracker.config import Settings
from booktracker.library import Library
from booktracker.auth import AuthService


@pytest.fixture
def test_settings(tmp_path, request):
    # Unique database file per test; cheap bcrypt so the suite stays fast
    return Settings(
        database_file=str(tmp_path / f"test_{request.node.name}.db"),
        legacy_books_file=None,
        jwt_secret_key="test-secret-key-with-enough-length-for-hs256",
        bcrypt_rounds=4,
        log_level="WARNING",
    )


@pytest.fixture
def lib(test_settings):
    return Library(db_file=test_settings.database_file, config=test_settings)


@pytest.fixture
def auth(test_settings):
    return AuthService(db_file=test_settings.database_file, config=test_settings)

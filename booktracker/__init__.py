"""Book Tracker - library book tracking backend

This package contains the core application modules including:
- API endpoints (api.py)
- Book lifecycle logic (library.py)
- Authentication service (auth.py)
- CLI interface (main.py)
- Data models (book.py, user.py)
- Persistence layer (database.py, repository.py)
"""

__version__ = "1.0.0"

import subprocess
import sys
from datetime import date
from functools import wraps
from typing import Optional

import typer

from booktracker.auth import AuthService
from booktracker.config import settings
from booktracker.errors import LibraryError
from booktracker.library import Library
from booktracker.logging_setup import configure_logging
from booktracker.ui_helpers import (
    print_book,
    print_list_result,
    print_message,
    print_stats_result,
    set_output_mode,
)

app = typer.Typer(help="Book Tracker CLI")


def get_library() -> Library:
    return Library(db_file=settings.database_file, config=settings)


def get_auth_service() -> AuthService:
    return AuthService(db_file=settings.database_file, config=settings)


def report_errors(func):
    """Print service errors as 'Error: ...' and exit with status 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LibraryError as e:
            print(f"Error: {e.message}")
            raise typer.Exit(code=1)
    return wrapper


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (default from settings)"),
):
    """Global CLI options."""
    configure_logging(log_level or settings.log_level)
    if output:
        set_output_mode(output)


@app.command("list")
@report_errors
def cli_list(query: Optional[str] = typer.Option(None, "--query", "-q", help="Filter by title, author or genre")):
    """List all books."""
    print_list_result(get_library().list_books(query))


@app.command("find")
@report_errors
def cli_find(book_id: str):
    """Show one book by id."""
    print_book(get_library().get_book(book_id))


@app.command("add")
@report_errors
def cli_add(
    title: str,
    author: str,
    genre: Optional[str] = typer.Option(None, help="Genre"),
    year: Optional[int] = typer.Option(None, help="Publication year"),
    description: Optional[str] = typer.Option(None, help="Short description"),
):
    """Add a new book."""
    result = get_library().add_book(
        {"title": title, "author": author, "genre": genre, "year": year, "description": description}
    )
    print_message(f"{result.message}: {result.book.title} by {result.book.author} ({result.book.id})", result.to_dict())


@app.command("remove")
@report_errors
def cli_remove(book_id: str):
    """Delete a book by id."""
    result = get_library().delete_book(book_id)
    print_message(f"{result.message}: {result.book.title}", result.to_dict())


@app.command("borrow")
@report_errors
def cli_borrow(
    book_id: str,
    name: str = typer.Option(..., help="Borrower name"),
    department: str = typer.Option(..., help="Borrower department"),
    section: str = typer.Option(..., help="Borrower section"),
    borrow_date: Optional[str] = typer.Option(None, "--date", help="Borrow date (YYYY-MM-DD), default today"),
):
    """Lend a book to a borrower."""
    result = get_library().borrow_book(book_id, {
        "name": name,
        "department": department,
        "section": section,
        "borrowDate": borrow_date or date.today().isoformat(),
    })
    print_message(f"{result.message}: {result.book.title} -> {name}", result.to_dict())


@app.command("return")
@report_errors
def cli_return(
    book_id: str,
    return_date: Optional[str] = typer.Option(None, "--date", help="Return date (YYYY-MM-DD), default today"),
):
    """Take a book back and report any late fine."""
    result = get_library().return_book(book_id, return_date or date.today().isoformat())
    print_message(result.message, result.to_dict())


@app.command("stats")
@report_errors
def cli_stats():
    """Show how many books are available and borrowed."""
    print_stats_result(get_library().get_statistics())


@app.command("create-user")
@report_errors
def cli_create_user(
    username: str,
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Register an account that can log in to the API."""
    user = get_auth_service().register(username, password)
    print(f"User created: {user.username} ({user.id})")


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, help="Bind address"),
    port: int = typer.Option(settings.api_port, help="Port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Run the HTTP API with uvicorn."""
    print(f"Starting API on http://{host}:{port}")
    cmd = [
        sys.executable, "-m", "uvicorn", "booktracker.api:create_app", "--factory",
        "--host", host, "--port", str(port),
    ]
    if reload:
        cmd.append("--reload")
    subprocess.run(cmd, check=False)


if __name__ == "__main__":
    app()

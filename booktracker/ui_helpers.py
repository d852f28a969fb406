import json
import os
from typing import Any, Dict, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from booktracker.book import Book

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "BOOKTRACKER_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _status(book: Book) -> str:
    if book.available:
        return "available"
    return f"borrowed by {book.borrow_info.name} since {book.borrow_info.borrow_date.isoformat()}"


def print_list_result(books: List[Book]) -> None:
    """Print the book list in the current output mode.
    - plain: 'ID - Title by Author [status]' lines, or 'No books in library.'
    - json: JSON array of books
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Status", style="green")
        for b in books:
            table.add_row(b.id, b.title, b.author, _status(b))
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author} [{_status(b)}]")


def print_book(book: Book) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(book.to_dict(), ensure_ascii=False))
        return

    lines = [
        f"Title: {book.title}",
        f"Author: {book.author}",
        f"ID: {book.id}",
    ]
    if book.genre:
        lines.append(f"Genre: {book.genre}")
    if book.year is not None:
        lines.append(f"Year: {book.year}")
    lines.append(f"Status: {_status(book)}")
    if book.borrow_info:
        lines.append(f"Department: {book.borrow_info.department}")
        lines.append(f"Section: {book.borrow_info.section}")

    if mode == "rich":
        _console.print(Panel.fit("\n".join(lines), title="Book", border_style="blue"))
    else:
        print("\n".join(lines))


def print_message(message: str, payload: Dict[str, Any] | None = None) -> None:
    """Print the outcome of a command; json mode prints the payload instead."""
    if get_output_mode() == "json" and payload is not None:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(message)


def print_stats_result(stats: Dict[str, Any]) -> None:
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    total = stats.get("total_books", 0)
    available = stats.get("available_books", 0)
    borrowed = stats.get("borrowed_books", 0)

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
    elif mode == "rich":
        content = f"[bold]Total Books:[/] {total}\n[bold]Available:[/] {available}\n[bold]Borrowed:[/] {borrowed}"
        _console.print(Panel.fit(content, title="Stats", border_style="blue"))
    else:
        print(f"Total Books: {total}")
        print(f"Available: {available}")
        print(f"Borrowed: {borrowed}")

from datetime import date

import pytest

from booktracker.errors import Conflict, InvalidIdentifier, NotFound, ValidationError
from booktracker.library import Library

BORROWER = {"name": "X", "department": "Y", "section": "Z", "borrowDate": "2024-01-01"}


def _add(lib, title="A", author="B", **extra):
    return lib.add_book({"title": title, "author": author, **extra}).book


def test_add_book_starts_available(lib):
    result = lib.add_book({"title": "  Ulysses ", "author": "James Joyce", "year": "1922"})
    book = result.book

    assert result.message == "Book added successfully"
    assert book.available is True
    assert book.borrow_info is None
    assert book.title == "Ulysses"
    assert book.year == 1922
    assert len(book.id) == 32
    assert lib.get_book(book.id).title == "Ulysses"


@pytest.mark.parametrize("draft", [
    {"title": "", "author": "B"},
    {"title": "   ", "author": "B"},
    {"title": "A"},
    {"author": "B"},
    {"title": "A", "author": None},
])
def test_add_book_requires_title_and_author(lib, draft):
    with pytest.raises(ValidationError):
        lib.add_book(draft)
    assert lib.list_books() == []


def test_add_book_rejects_non_numeric_year(lib):
    with pytest.raises(ValidationError, match="year"):
        lib.add_book({"title": "A", "author": "B", "year": "nineteen"})


def test_list_books_filter(lib):
    _add(lib, "Dune", "Frank Herbert", genre="Science Fiction")
    _add(lib, "Emma", "Jane Austen", genre="Romance")

    assert len(lib.list_books()) == 2
    assert [b.title for b in lib.list_books("austen")] == ["Emma"]
    assert [b.title for b in lib.list_books("fiction")] == ["Dune"]
    assert [b.id for b in lib.list_books("   ")] == [b.id for b in lib.list_books()]


def test_edit_book_overwrites_given_fields(lib):
    book = _add(lib, "Old Title", "Old Author")

    updated = lib.edit_book(book.id, {"title": "New Title", "genre": "Drama"}).book
    assert updated.title == "New Title"
    assert updated.author == "Old Author"
    assert updated.genre == "Drama"
    assert updated.version == book.version + 1


def test_edit_book_rejects_blank_title(lib):
    book = _add(lib)
    with pytest.raises(ValidationError):
        lib.edit_book(book.id, {"title": "  "})
    assert lib.get_book(book.id).title == "A"


def test_edit_book_can_set_lending_state_together(lib):
    book = _add(lib)
    updated = lib.edit_book(book.id, {"available": False, "borrowInfo": BORROWER}).book
    assert updated.available is False
    assert updated.borrow_info.name == "X"

    cleared = lib.edit_book(book.id, {"available": True, "borrowInfo": None}).book
    assert cleared.available is True
    assert cleared.borrow_info is None


@pytest.mark.parametrize("fields", [
    {"available": False},
    {"borrowInfo": BORROWER},
])
def test_edit_book_rejects_inconsistent_lending_state(lib, fields):
    book = _add(lib)
    with pytest.raises(ValidationError):
        lib.edit_book(book.id, fields)
    stored = lib.get_book(book.id)
    assert stored.available is True
    assert stored.borrow_info is None


def test_borrow_book_sets_borrow_info(lib):
    book = _add(lib)
    result = lib.borrow_book(book.id, BORROWER)

    assert result.message == "Book borrowed successfully"
    assert result.book.available is False
    assert result.book.borrow_info.department == "Y"
    assert result.book.borrow_info.borrow_date == date(2024, 1, 1)


@pytest.mark.parametrize("missing", ["name", "department", "section", "borrowDate"])
def test_borrow_book_incomplete_info_does_not_mutate(lib, missing):
    book = _add(lib)
    borrower = dict(BORROWER, **{missing: ""})

    with pytest.raises(ValidationError, match="incomplete"):
        lib.borrow_book(book.id, borrower)

    stored = lib.get_book(book.id)
    assert stored.available is True
    assert stored.borrow_info is None
    assert stored.version == book.version


def test_borrow_book_without_info(lib):
    book = _add(lib)
    with pytest.raises(ValidationError):
        lib.borrow_book(book.id, None)


def test_borrow_book_bad_date(lib):
    book = _add(lib)
    with pytest.raises(ValidationError, match="borrowDate"):
        lib.borrow_book(book.id, dict(BORROWER, borrowDate="01/02/2024"))


def test_borrow_already_borrowed_overwrites_by_default(lib):
    book = _add(lib)
    lib.borrow_book(book.id, BORROWER)
    again = lib.borrow_book(book.id, dict(BORROWER, name="W")).book
    assert again.borrow_info.name == "W"
    assert again.available is False


def test_strict_lifecycle_rejects_double_borrow_and_idle_return(test_settings):
    test_settings.strict_lifecycle = True
    lib = Library(db_file=test_settings.database_file, config=test_settings)
    book = _add(lib)

    with pytest.raises(Conflict):
        lib.return_book(book.id, "2024-01-02")

    lib.borrow_book(book.id, BORROWER)
    with pytest.raises(Conflict):
        lib.borrow_book(book.id, BORROWER)


@pytest.mark.parametrize("days, fine", [
    (0, 0),
    (1, 0),
    (15, 0),
    (16, 10),
    (20, 50),
    (24, 90),
])
def test_calculate_fine(lib, days, fine):
    assert lib.calculate_fine(days) == fine


def test_calculate_fine_is_monotonic(lib):
    fines = [lib.calculate_fine(d) for d in range(0, 60)]
    assert fines == sorted(fines)


def test_return_book_within_grace_period(lib):
    book = _add(lib)
    lib.borrow_book(book.id, BORROWER)

    result = lib.return_book(book.id, "2024-01-16")
    assert result.days_borrowed == 15
    assert result.fine == 0
    assert result.message == "Book returned successfully"
    assert result.book.available is True
    assert result.book.borrow_info is None


def test_return_book_late_computes_fine(lib):
    book = _add(lib)
    lib.borrow_book(book.id, BORROWER)

    result = lib.return_book(book.id, date(2024, 1, 21))
    assert result.days_borrowed == 20
    assert result.fine == 50
    assert "fine due 50" in result.message


def test_return_book_requires_date(lib):
    book = _add(lib)
    lib.borrow_book(book.id, BORROWER)
    with pytest.raises(ValidationError, match="returnDate"):
        lib.return_book(book.id, "")
    assert lib.get_book(book.id).available is False


def test_return_before_borrow_date_is_rejected(lib):
    book = _add(lib)
    lib.borrow_book(book.id, BORROWER)
    with pytest.raises(ValidationError):
        lib.return_book(book.id, "2023-12-01")
    assert lib.get_book(book.id).available is False


def test_return_available_book_is_noop(lib):
    book = _add(lib)
    result = lib.return_book(book.id, "2024-05-01")
    assert result.fine == 0
    assert result.days_borrowed is None
    assert result.message == "Book returned successfully"
    assert result.book.available is True


def test_delete_book(lib):
    book = _add(lib)
    result = lib.delete_book(book.id)
    assert result.book.id == book.id
    assert result.message == "Book deleted successfully"
    with pytest.raises(NotFound):
        lib.get_book(book.id)


def test_delete_missing_book_is_not_found(lib):
    with pytest.raises(NotFound):
        lib.delete_book("0" * 32)


def test_malformed_id_is_invalid_identifier(lib):
    with pytest.raises(InvalidIdentifier):
        lib.get_book("not-an-id")
    with pytest.raises(InvalidIdentifier):
        lib.delete_book("123")


def test_lending_invariant_holds_through_cycle(lib):
    book = _add(lib)
    for step in (
        lambda: lib.borrow_book(book.id, BORROWER),
        lambda: lib.return_book(book.id, "2024-01-10"),
        lambda: lib.borrow_book(book.id, dict(BORROWER, borrowDate="2024-02-01")),
    ):
        current = step().book
        assert current.available == (current.borrow_info is None)


def test_statistics(lib):
    first = _add(lib, "One", "Author")
    _add(lib, "Two", "Author")
    lib.borrow_book(first.id, BORROWER)

    assert lib.get_statistics() == {"total_books": 2, "available_books": 1, "borrowed_books": 1}


def test_end_to_end_scenario(lib):
    book = lib.add_book({"title": "A", "author": "B"}).book
    assert book.available is True

    borrowed = lib.borrow_book(book.id, BORROWER).book
    assert borrowed.available is False

    result = lib.return_book(book.id, "2024-01-25")
    assert result.days_borrowed == 24
    assert result.fine == 90
    assert result.book.available is True
    assert result.book.borrow_info is None

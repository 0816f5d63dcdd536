from datetime import timedelta

import pytest

from library_service.book import Book, BookStatus
from library_service.config import Settings
from library_service.database import SqliteStore
from library_service.errors import ConflictError, NotFoundError
from library_service.library import Library
from library_service.loan import LoanStatus
from library_service.member import Member
from library_service.memory import InMemoryStore


def test_add_and_find_book(lib, dune):
    lib.add_book(dune)
    found = lib.find_book("978-0441172719")
    assert found is not None
    assert found.title == "Dune"
    assert lib.find_book("0306406152") is None


def test_list_books_sorted_by_title(lib):
    lib.add_book(Book(title="zen", author="A", isbn="9780000000002"))
    lib.add_book(Book(title="Alpha", author="B", isbn="9780000000019"))
    assert [b.title for b in lib.list_books()] == ["Alpha", "zen"]


def test_update_book(lib, dune):
    lib.add_book(dune)
    updated = lib.update_book("9780441172719", {"title": "Dune (Deluxe)"})
    assert updated.title == "Dune (Deluxe)"
    with pytest.raises(NotFoundError):
        lib.update_book("0306406152", {"title": "Nope"})


def test_remove_book(lib, dune):
    lib.add_book(dune)
    assert lib.remove_book("9780441172719") is True
    assert lib.remove_book("9780441172719") is False


def test_checkout_and_return_by_isbn_and_email(lib, dune, alice, notifier):
    lib.add_book(dune)
    lib.register_member(alice)

    loan = lib.checkout_book("9780441172719", "ALICE@example.com")
    assert loan.status == LoanStatus.ACTIVE
    assert lib.find_book("9780441172719").status == BookStatus.CHECKED_OUT

    returned = lib.return_book("9780441172719")
    assert returned.id == loan.id
    assert returned.status == LoanStatus.RETURNED
    assert lib.find_book("9780441172719").is_available
    assert notifier.notify_return.call_count == 1


def test_return_book_not_on_loan(lib, dune):
    lib.add_book(dune)
    with pytest.raises(ConflictError):
        lib.return_book("9780441172719")


def test_checkout_unknown_member(lib, dune):
    lib.add_book(dune)
    with pytest.raises(NotFoundError) as exc:
        lib.checkout_book("9780441172719", "ghost@example.com")
    assert exc.value.entity == "member"


def test_cannot_remove_book_on_loan(lib, dune, alice):
    lib.add_book(dune)
    lib.register_member(alice)
    lib.checkout_book("9780441172719", "alice@example.com")
    with pytest.raises(ConflictError):
        lib.remove_book("9780441172719")


def test_loans_for_member(lib, dune, alice):
    lib.add_book(dune)
    lib.register_member(alice)
    lib.checkout_book("9780441172719", "alice@example.com")
    assert [loan.book_id for loan in lib.loans_for_member("alice@example.com")] == [lib.find_book(dune.isbn).id]


def test_get_statistics(lib, dune, alice, student):
    lib.add_book(dune)
    lib.add_book(Book(title="Dune Messiah", author="frank herbert", isbn="9780000000002"))
    lib.add_book(Book(title="Emma", author="Jane Austen", isbn="9780199535675"))
    lib.register_member(alice)
    lib.register_member(student)
    lib.checkout_book("9780199535675", "sam@example.edu")

    stats = lib.get_statistics()
    assert stats == {
        "total_books": 3,
        "unique_authors": 2,
        "available_books": 2,
        "checked_out_books": 1,
        "total_members": 2,
        "active_loans": 1,
        "overdue_loans": 0,
    }


def test_from_settings_uses_configured_db_file(tmp_path):
    db_file = str(tmp_path / "configured.db")
    lib = Library.from_settings(Settings(db_file=db_file))
    try:
        assert isinstance(lib.store, SqliteStore)
        assert lib.store.db.db_file == db_file
        lib.register_member(Member(name="Alice", email="alice@example.com"))
    finally:
        lib.close()
    assert (tmp_path / "configured.db").exists()


def test_from_settings_memory_storage(tmp_path):
    lib = Library.from_settings(Settings(storage="memory", db_file=str(tmp_path / "never.db")))
    assert isinstance(lib.store, InMemoryStore)
    lib.register_member(Member(name="Alice", email="alice@example.com"))
    assert lib.find_member("alice@example.com") is not None
    lib.close()
    assert not (tmp_path / "never.db").exists()


def test_update_book_changes_isbn(lib, dune):
    original = lib.add_book(dune)
    updated = lib.update_book("9780441172719", {"isbn": "0306406152", "copies": 2})
    assert updated.id == original.id
    assert updated.isbn == "0306406152"
    assert lib.find_book("9780441172719") is None
    assert lib.find_book("0306406152").copies == 2


def test_mark_overdue(lib, dune, alice, clock):
    lib.add_book(dune)
    lib.register_member(alice)
    loan = lib.checkout_book("9780441172719", "alice@example.com")
    assert lib.mark_overdue() == 0

    clock.today = loan.due_date + timedelta(days=1)
    assert lib.mark_overdue() == 1
    assert lib.loans_for_member("alice@example.com")[0].status == LoanStatus.OVERDUE
    assert lib.mark_overdue() == 0

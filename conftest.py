from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest

from library_service.book import Book
from library_service.database import SqliteStore
from library_service.library import Library
from library_service.member import Member, MembershipType
from library_service.memory import InMemoryStore
from library_service.services.notifications import NotificationService


class FakeClock:
    """Elle ilerletilebilen saat; testlerde vade ve gecikme hesapları için."""

    def __init__(self, today=None):
        self.today = today or date.today()

    def __call__(self):
        return self.today

    def advance(self, days):
        self.today += timedelta(days=days)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return MagicMock(spec=NotificationService)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def sqlite_store(tmp_path, request):
    # Her test için benzersiz bir veritabanı dosyası oluştur
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    store = SqliteStore(db_file)
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    """Aynı davranışı her iki depo üzerinde de çalıştırır."""
    if request.param == "memory":
        yield InMemoryStore()
        return
    store = SqliteStore(str(tmp_path / "library.db"))
    yield store
    store.close()


@pytest.fixture
def lib(store, notifier, clock):
    lib = Library(store, notifier=notifier, clock=clock)
    yield lib
    lib.close()


@pytest.fixture
def dune():
    return Book(title="Dune", author="Frank Herbert", isbn="9780441172719", published_year=1965)


@pytest.fixture
def alice():
    return Member(name="Alice", email="alice@example.com")


@pytest.fixture
def student():
    return Member(name="Sam", email="sam@example.edu", membership_type=MembershipType.STUDENT)

from typing import Any, Dict, List, Mapping, Optional

from library_service.book import Book, BookStatus
from library_service.config import Settings, settings as default_settings
from library_service.database import SqliteStore
from library_service.errors import ConflictError
from library_service.loan import Loan, LoanStatus
from library_service.member import Member
from library_service.memory import InMemoryStore
from library_service.repository import Store
from library_service.services import (
    BookSearchService,
    BookService,
    LoanService,
    MemberService,
    NotificationService,
    ReportService,
)
from library_service.services.base import Clock


class Library:
    """Front door to the catalog: wires the services over one store.

    Workflows here are keyed by ISBN and e-mail, the identifiers people
    actually type; the services underneath work with entity ids.
    """

    def __init__(self, store: Store, notifier: Optional[NotificationService] = None,
                 clock: Optional[Clock] = None) -> None:
        self.store = store
        self.books = BookService(store, clock=clock)
        self.members = MemberService(store, clock=clock)
        self.loans = LoanService(store, notifier=notifier, clock=clock)
        self.search = BookSearchService(store.books)
        self.reports = ReportService(store, self.loans)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, db_file: Optional[str] = None,
                      **kwargs: Any) -> "Library":
        """SQLite deposu açar; ``storage`` "memory" ise veritabanı dosyası olmadan çalışır."""
        settings = settings or default_settings
        if settings.storage == "memory":
            return cls(InMemoryStore(), **kwargs)
        return cls(SqliteStore(db_file or settings.db_file), **kwargs)

    # ------------------------- Books ------------------------- #
    def add_book(self, book: Book) -> Book:
        return self.books.create(book)

    def find_book(self, isbn: str) -> Optional[Book]:
        return self.books.find_by_isbn(isbn)

    def list_books(self) -> List[Book]:
        return sorted(self.books.query(), key=lambda b: (b.title or "").casefold())

    def update_book(self, isbn: str, patch: Mapping[str, Any]) -> Book:
        """Apply ``patch`` to the book with this ISBN. The patch may change the ISBN itself."""
        book = self.books.get_by_isbn(isbn)
        return self.books.update(book.id, patch)

    def remove_book(self, isbn: str) -> bool:
        book = self.find_book(isbn)
        if not book:
            return False
        self.books.delete(book.id)
        return True

    # ------------------------- Members ------------------------- #
    def register_member(self, member: Member) -> Member:
        return self.members.create(member)

    def find_member(self, email: str) -> Optional[Member]:
        return self.members.find_by_email(email)

    # ------------------------- Loans ------------------------- #
    def checkout_book(self, isbn: str, email: str) -> Loan:
        book = self.books.get_by_isbn(isbn)
        member = self.members.get_by_email(email)
        return self.loans.checkout(book.id, member.id)

    def return_book(self, isbn: str) -> Loan:
        book = self.books.get_by_isbn(isbn)
        loan = self.loans.outstanding_loan_for_book(book.id)
        if loan is None:
            raise ConflictError("Book is not checked out", field="isbn")
        return self.loans.return_loan(loan.id)

    def loans_for_member(self, email: str) -> List[Loan]:
        member = self.members.get_by_email(email)
        return self.loans.query({"member_id": member.id}).all()

    # ------------------------- Search & reports ------------------------- #
    def search_books(self, term: str, search_type: str = "title") -> List[Book]:
        return self.search.search(term, search_type)

    def generate_report(self, report_type: str) -> str:
        return self.reports.generate(report_type)

    def mark_overdue(self) -> int:
        """Vadesi geçmiş ödünçleri OVERDUE olarak işaretle."""
        return self.loans.mark_overdue()

    def get_statistics(self) -> Dict[str, Any]:
        """Kütüphane istatistiklerini alın."""
        authors = {(book.author or "").casefold() for book in self.books.query()}
        return {
            "total_books": self.books.count(),
            "unique_authors": len(authors),
            "available_books": self.books.count({"status": BookStatus.AVAILABLE}),
            "checked_out_books": self.books.count({"status": BookStatus.CHECKED_OUT}),
            "total_members": self.members.count(),
            "active_loans": self.loans.count({"status": LoanStatus.ACTIVE}),
            "overdue_loans": self.loans.count({"status": LoanStatus.OVERDUE}),
        }

    def close(self) -> None:
        self.store.close()

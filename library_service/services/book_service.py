import dataclasses
import logging
from typing import List

from library_service.book import Book, BookStatus
from library_service.errors import ConflictError, FieldViolation, NotFoundError, ValidationError
from library_service.loan import OUTSTANDING_STATUSES
from library_service.services.base import EntityService
from library_service.validators import ISBNValidator, validate_book

logger = logging.getLogger(__name__)


class BookService(EntityService[Book]):
    """Katalogdaki kitapların yaşam döngüsünü yönetir."""

    entity_name = "book"
    repository_name = "books"
    updatable_fields = ("title", "author", "isbn", "copies", "published_year")

    def validate(self, book: Book) -> List[FieldViolation]:
        return validate_book(book, today=self.clock())

    def prepare(self, book: Book) -> Book:
        # ISBN'yi yalnızca geçerliyse normalleştir; geçersiz değer doğrulamada raporlanır
        normalized = ISBNValidator.normalize_isbn(book.isbn) if isinstance(book.isbn, str) else book.isbn
        if normalized != book.isbn and ISBNValidator.is_valid_isbn(normalized):
            return dataclasses.replace(book, isbn=normalized)
        return book

    def create(self, book: Book) -> Book:
        if book.status != BookStatus.AVAILABLE:
            raise ValidationError(
                [FieldViolation("status", "invalid", "new books must be AVAILABLE")], entity=self.entity_name
            )
        return super().create(book)

    def get_by_isbn(self, isbn: str) -> Book:
        norm = ISBNValidator.normalize_isbn(isbn)
        book = self.repository.find_one({"isbn": norm}) if norm else None
        if book is None:
            raise NotFoundError(self.entity_name, isbn, field="isbn")
        return book

    def find_by_isbn(self, isbn: str):
        try:
            return self.get_by_isbn(isbn)
        except NotFoundError:
            return None

    def before_delete(self, book: Book) -> None:
        loans = self.store.loans
        for status in OUTSTANDING_STATUSES:
            if loans.find_one({"book_id": book.id, "status": status}) is not None:
                raise ConflictError(f"Book {book.id} is on loan and cannot be removed.", field="id")
        # Geçmiş ödünç kayıtları kitapla birlikte silinir
        history = [loan.id for loan in loans.query({"book_id": book.id})]
        for loan_id in history:
            loans.remove(loan_id)
        if history:
            logger.info("Removed %d past loans of book %s", len(history), book.id)

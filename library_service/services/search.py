from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from library_service.book import Book
from library_service.errors import FieldViolation, ValidationError
from library_service.repository import Repository
from library_service.validators import ISBNValidator


class BookSearchStrategy(ABC):
    search_type = ""

    def __init__(self, books: Repository[Book]) -> None:
        self.books = books

    def supports(self, search_type: str) -> bool:
        return self.search_type == (search_type or "").strip().lower()

    @abstractmethod
    def search(self, term: str) -> List[Book]:
        pass


class TitleBookSearchStrategy(BookSearchStrategy):
    """Başlıkta büyük/küçük harf duyarsız alt dize araması."""

    search_type = "title"

    def search(self, term: str) -> List[Book]:
        needle = term.strip().casefold()
        return [book for book in self.books.query() if needle in (book.title or "").casefold()]


class AuthorBookSearchStrategy(BookSearchStrategy):
    search_type = "author"

    def search(self, term: str) -> List[Book]:
        wanted = term.strip().casefold()
        return [book for book in self.books.query() if (book.author or "").casefold() == wanted]


class IsbnBookSearchStrategy(BookSearchStrategy):
    search_type = "isbn"

    def search(self, term: str) -> List[Book]:
        norm = ISBNValidator.normalize_isbn(term)
        if not norm:
            return []
        book = self.books.find_one({"isbn": norm})
        return [book] if book else []


class BookSearchService:
    def __init__(self, books: Repository[Book],
                 strategies: Optional[Iterable[BookSearchStrategy]] = None) -> None:
        if strategies is None:
            strategies = (
                TitleBookSearchStrategy(books),
                AuthorBookSearchStrategy(books),
                IsbnBookSearchStrategy(books),
            )
        self.strategies = list(strategies)

    @property
    def search_types(self) -> List[str]:
        return [strategy.search_type for strategy in self.strategies]

    def search(self, term: str, search_type: str = "title") -> List[Book]:
        for strategy in self.strategies:
            if strategy.supports(search_type):
                return strategy.search(term or "")
        raise ValidationError(
            [FieldViolation("search_type", "invalid",
                            f"Invalid search type. Use one of: {', '.join(self.search_types)}")],
        )

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from library_service.entity import Entity, coerce_enum, strip_text


class BookStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    CHECKED_OUT = "CHECKED_OUT"


@dataclass
class Book(Entity):
    """Katalogdaki tek bir kitap kaydını temsil eder."""

    title: Optional[str]
    author: Optional[str]
    isbn: Optional[str]
    copies: int = 1
    published_year: Optional[int] = None
    status: BookStatus = BookStatus.AVAILABLE
    id: Optional[int] = None
    created_at: Optional[str] = None

    def __post_init__(self) -> None:
        self.title = strip_text(self.title)
        self.author = strip_text(self.author)
        self.isbn = strip_text(self.isbn)
        self.status = coerce_enum(BookStatus, self.status)

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ISBN: {self.isbn})"

    @property
    def is_available(self) -> bool:
        return self.status == BookStatus.AVAILABLE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "copies": self.copies,
            "published_year": self.published_year,
            "status": self.status.value if isinstance(self.status, BookStatus) else self.status,
            "created_at": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            id=data.get("id"),
            title=data.get("title"),
            author=data.get("author"),
            isbn=data.get("isbn"),
            copies=data.get("copies", 1),
            published_year=data.get("published_year"),
            status=data.get("status") or BookStatus.AVAILABLE,
            created_at=data.get("created_at"),
        )

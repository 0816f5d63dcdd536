from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from library_service.entity import Entity, coerce_date, coerce_enum, strip_text


class MembershipType(str, Enum):
    REGULAR = "REGULAR"
    PREMIUM = "PREMIUM"
    STUDENT = "STUDENT"


@dataclass
class Member(Entity):
    """Ödünç alma hakkı olan kayıtlı bir kütüphane üyesi."""

    name: Optional[str]
    email: Optional[str]
    membership_type: MembershipType = MembershipType.REGULAR
    member_since: Optional[date] = field(default_factory=date.today)
    books_checked_out: int = 0
    id: Optional[int] = None

    def __post_init__(self) -> None:
        self.name = strip_text(self.name)
        email = strip_text(self.email)
        self.email = email.lower() if isinstance(email, str) else email
        self.membership_type = coerce_enum(MembershipType, self.membership_type)
        self.member_since = coerce_date(self.member_since)

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} <{self.email}> ({self.membership_type})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "membership_type": (
                self.membership_type.value
                if isinstance(self.membership_type, MembershipType)
                else self.membership_type
            ),
            "member_since": self.member_since.isoformat() if isinstance(self.member_since, date) else self.member_since,
            "books_checked_out": self.books_checked_out,
        }

    @staticmethod
    def from_dict(data: dict) -> "Member":
        return Member(
            id=data.get("id"),
            name=data.get("name"),
            email=data.get("email"),
            membership_type=data.get("membership_type") or MembershipType.REGULAR,
            member_since=data.get("member_since"),
            books_checked_out=data.get("books_checked_out") or 0,
        )

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from library_service.entity import Entity, coerce_date, coerce_enum


class LoanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RETURNED = "RETURNED"
    OVERDUE = "OVERDUE"


OUTSTANDING_STATUSES = (LoanStatus.ACTIVE, LoanStatus.OVERDUE)


def _iso(value):
    return value.isoformat() if isinstance(value, date) else value


@dataclass
class Loan(Entity):
    """Bir kitabın bir üyeye ödünç verilmesi."""

    book_id: Optional[int]
    member_id: Optional[int]
    checkout_date: Optional[date] = None
    due_date: Optional[date] = None
    return_date: Optional[date] = None
    status: LoanStatus = LoanStatus.ACTIVE
    late_fee: float = 0.0
    id: Optional[int] = None

    def __post_init__(self) -> None:
        self.checkout_date = coerce_date(self.checkout_date)
        self.due_date = coerce_date(self.due_date)
        self.return_date = coerce_date(self.return_date)
        self.status = coerce_enum(LoanStatus, self.status)

    @property
    def is_outstanding(self) -> bool:
        return self.status in OUTSTANDING_STATUSES

    def days_late(self, on: date) -> int:
        if not isinstance(self.due_date, date) or on <= self.due_date:
            return 0
        return (on - self.due_date).days

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "member_id": self.member_id,
            "checkout_date": _iso(self.checkout_date),
            "due_date": _iso(self.due_date),
            "return_date": _iso(self.return_date),
            "status": self.status.value if isinstance(self.status, LoanStatus) else self.status,
            "late_fee": self.late_fee,
        }

    @staticmethod
    def from_dict(data: dict) -> "Loan":
        return Loan(
            id=data.get("id"),
            book_id=data.get("book_id"),
            member_id=data.get("member_id"),
            checkout_date=data.get("checkout_date"),
            due_date=data.get("due_date"),
            return_date=data.get("return_date"),
            status=data.get("status") or LoanStatus.ACTIVE,
            late_fee=data.get("late_fee") or 0.0,
        )

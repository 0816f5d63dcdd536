from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from library_service.book import BookStatus
from library_service.errors import FieldViolation, ValidationError
from library_service.repository import Store
from library_service.services.loan_service import LoanService


class ReportGenerator(ABC):
    report_name = ""

    def supports(self, report_type: str) -> bool:
        return self.report_name == (report_type or "").strip().lower()

    @abstractmethod
    def generate(self) -> str:
        pass


class OverdueReportGenerator(ReportGenerator):
    report_name = "overdue"

    def __init__(self, store: Store, loans: LoanService) -> None:
        self.store = store
        self.loans = loans

    def generate(self) -> str:
        lines: List[str] = []
        for loan in self.loans.overdue_loans():
            book = self.store.books.get(loan.book_id)
            member = self.store.members.get(loan.member_id)
            lines.append(
                f"{book.title} by {book.author} (member {member.email}) - due {loan.due_date.isoformat()}"
            )
        if not lines:
            return "No overdue books."
        return "Overdue Books:\n" + "\n".join(lines)


class AvailabilityReportGenerator(ReportGenerator):
    report_name = "available"

    def __init__(self, store: Store) -> None:
        self.store = store

    def generate(self) -> str:
        lines = [
            f"{book.title} by {book.author} (ISBN {book.isbn})"
            for book in self.store.books.query({"status": BookStatus.AVAILABLE})
        ]
        if not lines:
            return "No available books."
        return "Available Books:\n" + "\n".join(lines)


class MemberCountReportGenerator(ReportGenerator):
    report_name = "members"

    def __init__(self, store: Store) -> None:
        self.store = store

    def generate(self) -> str:
        return f"Total members: {self.store.members.count()}"


class ReportService:
    def __init__(self, store: Store, loans: LoanService,
                 generators: Optional[Iterable[ReportGenerator]] = None) -> None:
        if generators is None:
            generators = (
                OverdueReportGenerator(store, loans),
                AvailabilityReportGenerator(store),
                MemberCountReportGenerator(store),
            )
        self.generators = list(generators)

    @property
    def report_types(self) -> List[str]:
        return [generator.report_name for generator in self.generators]

    def generate(self, report_type: str) -> str:
        for generator in self.generators:
            if generator.supports(report_type):
                return generator.generate()
        raise ValidationError(
            [FieldViolation("report_type", "invalid",
                            f"Invalid report type. Use one of: {', '.join(self.report_types)}")],
        )

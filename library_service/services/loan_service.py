import dataclasses
import logging
from datetime import date, timedelta
from typing import List, Optional

from library_service.book import BookStatus
from library_service.errors import ConflictError, FieldViolation, NotFoundError, ValidationError
from library_service.loan import OUTSTANDING_STATUSES, Loan, LoanStatus
from library_service.repository import Store
from library_service.services.base import Clock, EntityService
from library_service.services.fees import LateFeeCalculatorRegistry
from library_service.services.notifications import EmailNotificationService, NotificationService
from library_service.services.policies import CheckoutPolicyRegistry
from library_service.validators import validate_loan

logger = logging.getLogger(__name__)


class LoanService(EntityService[Loan]):
    """Ödünç verme ve iade iş kurallarını uygular.

    Bir kitabın aynı anda yalnızca bir açık (ACTIVE ya da OVERDUE) ödüncü
    olabilir. Her ödünç/iade; ödünç kaydını, kitap durumunu ve üye sayacını
    tek bir atomik blokta günceller. Bildirimler blok tamamlandıktan sonra
    gönderilir.
    """

    entity_name = "loan"
    repository_name = "loans"
    updatable_fields = ("due_date",)

    def __init__(self, store: Store, policies: Optional[CheckoutPolicyRegistry] = None,
                 fees: Optional[LateFeeCalculatorRegistry] = None,
                 notifier: Optional[NotificationService] = None,
                 clock: Optional[Clock] = None) -> None:
        super().__init__(store, clock=clock)
        self.policies = policies or CheckoutPolicyRegistry()
        self.fees = fees or LateFeeCalculatorRegistry()
        self.notifier = notifier or EmailNotificationService()

    def validate(self, loan: Loan) -> List[FieldViolation]:
        return validate_loan(loan, book_lookup=self.store.books.get, member_lookup=self.store.members.get)

    def prepare(self, loan: Loan) -> Loan:
        # Süresi uzatılan gecikmiş ödünç yeniden aktif olur
        if (loan.status == LoanStatus.OVERDUE and isinstance(loan.due_date, date)
                and loan.due_date >= self.clock()):
            return dataclasses.replace(loan, status=LoanStatus.ACTIVE)
        return loan

    # ------------------------- Ödünç verme ------------------------- #
    def outstanding_loan_for_book(self, book_id: int) -> Optional[Loan]:
        for status in OUTSTANDING_STATUSES:
            loan = self.repository.find_one({"book_id": book_id, "status": status})
            if loan is not None:
                return loan
        return None

    def create(self, loan: Loan) -> Loan:
        """Persist a new loan after checking references, availability and the member's limit."""
        if loan.id is not None:
            raise ValidationError([FieldViolation("id", "immutable", "id is assigned by the store")],
                                  entity=self.entity_name)
        candidate = self.prepare(dataclasses.replace(loan))
        violations = self.validate(candidate)
        if candidate.status != LoanStatus.ACTIVE:
            violations.append(FieldViolation("status", "invalid", "new loans must be ACTIVE"))
        if candidate.return_date is not None:
            violations.append(FieldViolation("return_date", "invalid", "new loans cannot have a return_date"))
        if violations:
            logger.warning("Rejected loan: %s", ", ".join(v.field for v in violations))
            raise ValidationError(violations, entity=self.entity_name)

        with self.store.atomic():
            book = self.store.books.get(candidate.book_id)
            member = self.store.members.get(candidate.member_id)
            if book is None:
                raise NotFoundError("book", candidate.book_id)
            if member is None:
                raise NotFoundError("member", candidate.member_id)

            existing = self.outstanding_loan_for_book(book.id)
            if existing is not None:
                logger.warning("Book %s already on loan (loan %s)", book.id, existing.id)
                raise ConflictError(f"Book {book.id} is already checked out.", field="book_id")

            policy = self.policies.resolve(member.membership_type)
            if not policy.can_checkout(member.books_checked_out):
                logger.warning("Member %s reached checkout limit (%d)", member.id, policy.max_books)
                raise ConflictError("Member has reached checkout limit", field="member_id")

            created = self.repository.add(candidate)
            book = self.store.books.update(dataclasses.replace(book, status=BookStatus.CHECKED_OUT))
            member = self.store.members.update(
                dataclasses.replace(member, books_checked_out=member.books_checked_out + 1)
            )

        logger.info("Loan %s: book %s -> member %s, due %s", created.id, book.id, member.id, created.due_date)
        self.notifier.notify_checkout(member, book, created)
        return created

    def checkout(self, book_id: int, member_id: int) -> Loan:
        """Üyelik politikasına göre vade tarihini hesaplayarak yeni bir ödünç oluştur."""
        if self.store.books.get(book_id) is None:
            raise NotFoundError("book", book_id)
        member = self.store.members.get(member_id)
        if member is None:
            raise NotFoundError("member", member_id)
        policy = self.policies.resolve(member.membership_type)
        today = self.clock()
        return self.create(Loan(
            book_id=book_id,
            member_id=member_id,
            checkout_date=today,
            due_date=today + timedelta(days=policy.loan_period_days),
        ))

    # ------------------------- İade ------------------------- #
    def return_loan(self, loan_id: int) -> Loan:
        today = self.clock()
        with self.store.atomic():
            loan = self.get(loan_id)
            if not loan.is_outstanding:
                raise ConflictError(f"Loan {loan_id} is not active.", field="status")
            member = self.store.members.get(loan.member_id)
            book = self.store.books.get(loan.book_id)

            fee = self.fees.calculate_fee(member.membership_type, loan.days_late(today))
            returned = dataclasses.replace(loan, status=LoanStatus.RETURNED, return_date=today, late_fee=fee)
            self._ensure_valid(returned)

            returned = self.repository.update(returned)
            book = self.store.books.update(dataclasses.replace(book, status=BookStatus.AVAILABLE))
            member = self.store.members.update(
                dataclasses.replace(member, books_checked_out=max(0, member.books_checked_out - 1))
            )

        logger.info("Loan %s returned, late fee %.2f", loan_id, fee)
        self.notifier.notify_return(member, book, returned)
        return returned

    # ------------------------- Gecikmeler ------------------------- #
    def overdue_loans(self, on: Optional[date] = None) -> List[Loan]:
        on = on or self.clock()
        overdue: List[Loan] = []
        for status in OUTSTANDING_STATUSES:
            overdue.extend(loan for loan in self.repository.query({"status": status}) if loan.due_date < on)
        return sorted(overdue, key=lambda loan: (loan.due_date, loan.id))

    def mark_overdue(self) -> int:
        """Vadesi geçmiş ACTIVE ödünçleri OVERDUE olarak işaretle; güncellenen sayıyı döndür."""
        today = self.clock()
        with self.store.atomic():
            late = [loan for loan in self.repository.query({"status": LoanStatus.ACTIVE}) if loan.due_date < today]
            for loan in late:
                self.repository.update(dataclasses.replace(loan, status=LoanStatus.OVERDUE))
        if late:
            logger.info("Marked %d loans overdue", len(late))
        return len(late)

    def update(self, loan_id: int, patch) -> Loan:
        with self.store.atomic():
            if not self.get(loan_id).is_outstanding:
                raise ConflictError(f"Loan {loan_id} is not active.", field="status")
            return super().update(loan_id, patch)

    def before_delete(self, loan: Loan) -> None:
        if loan.is_outstanding:
            raise ConflictError(f"Loan {loan.id} must be returned before it is deleted.", field="status")

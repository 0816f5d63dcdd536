import logging
from typing import List, Optional

from library_service.errors import ConflictError, FieldViolation, NotFoundError, ValidationError
from library_service.loan import OUTSTANDING_STATUSES
from library_service.member import Member
from library_service.services.base import EntityService
from library_service.validators import validate_member

logger = logging.getLogger(__name__)


class MemberService(EntityService[Member]):
    entity_name = "member"
    repository_name = "members"
    updatable_fields = ("name", "email", "membership_type", "member_since")

    def validate(self, member: Member) -> List[FieldViolation]:
        return validate_member(member, today=self.clock())

    def create(self, member: Member) -> Member:
        # Sayaç yalnızca ödünç işlemleriyle değişir
        if member.books_checked_out != 0:
            raise ValidationError(
                [FieldViolation("books_checked_out", "immutable", "books_checked_out is managed by loans")],
                entity=self.entity_name,
            )
        return super().create(member)

    def get_by_email(self, email: str) -> Member:
        key = email.strip().lower() if isinstance(email, str) else email
        member = self.repository.find_one({"email": key}) if key else None
        if member is None:
            raise NotFoundError(self.entity_name, email, field="email")
        return member

    def find_by_email(self, email: str) -> Optional[Member]:
        try:
            return self.get_by_email(email)
        except NotFoundError:
            return None

    def before_delete(self, member: Member) -> None:
        loans = self.store.loans
        for status in OUTSTANDING_STATUSES:
            if loans.find_one({"member_id": member.id, "status": status}) is not None:
                raise ConflictError(f"Member {member.id} still has books on loan.", field="id")
        history = [loan.id for loan in loans.query({"member_id": member.id})]
        for loan_id in history:
            loans.remove(loan_id)
        if history:
            logger.info("Removed %d past loans of member %s", len(history), member.id)

from dataclasses import dataclass
from typing import Iterable, Optional

from library_service.member import MembershipType


@dataclass(frozen=True)
class CheckoutPolicy:
    """Ödünç alma sınırı ve süresi, üyelik türüne göre."""

    membership_type: MembershipType
    max_books: int
    loan_period_days: int

    def supports(self, membership_type: MembershipType) -> bool:
        return self.membership_type == membership_type

    def can_checkout(self, books_checked_out: int) -> bool:
        return books_checked_out < self.max_books


REGULAR_POLICY = CheckoutPolicy(MembershipType.REGULAR, max_books=3, loan_period_days=14)
STUDENT_POLICY = CheckoutPolicy(MembershipType.STUDENT, max_books=5, loan_period_days=21)
PREMIUM_POLICY = CheckoutPolicy(MembershipType.PREMIUM, max_books=10, loan_period_days=30)

DEFAULT_POLICIES = (REGULAR_POLICY, STUDENT_POLICY, PREMIUM_POLICY)


class CheckoutPolicyRegistry:
    def __init__(self, policies: Optional[Iterable[CheckoutPolicy]] = None) -> None:
        self.policies = list(policies if policies is not None else DEFAULT_POLICIES)

    def resolve(self, membership_type: MembershipType) -> CheckoutPolicy:
        for policy in self.policies:
            if policy.supports(membership_type):
                return policy
        raise ValueError(f"Unknown membership type: {membership_type}")

from dataclasses import dataclass
from typing import Iterable, Optional

from library_service.member import MembershipType


@dataclass(frozen=True)
class LateFeeCalculator:
    membership_type: MembershipType
    daily_rate: float

    def supports(self, membership_type: MembershipType) -> bool:
        return self.membership_type == membership_type

    def calculate_fee(self, days_late: int) -> float:
        if days_late <= 0:
            return 0.0
        return round(days_late * self.daily_rate, 2)


DEFAULT_CALCULATORS = (
    LateFeeCalculator(MembershipType.REGULAR, daily_rate=0.50),
    # öğrenciler yarı ücret öder
    LateFeeCalculator(MembershipType.STUDENT, daily_rate=0.25),
    LateFeeCalculator(MembershipType.PREMIUM, daily_rate=0.0),
)


class LateFeeCalculatorRegistry:
    def __init__(self, calculators: Optional[Iterable[LateFeeCalculator]] = None) -> None:
        self.calculators = list(calculators if calculators is not None else DEFAULT_CALCULATORS)

    def calculate_fee(self, membership_type: MembershipType, days_late: int) -> float:
        for calculator in self.calculators:
            if calculator.supports(membership_type):
                return calculator.calculate_fee(days_late)
        raise ValueError(f"Unknown membership type: {membership_type}")

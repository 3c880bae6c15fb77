"""Referral bonus calculation."""

from decimal import ROUND_FLOOR, Decimal
from typing import Mapping

from credit_engine.errors import LedgerValidationError
from credit_engine.settings import DEFAULT_BONUS_RATES

FALLBACK_ACTION = "other"


class ReferralCalculator:
    """Maps (action type, base credits) to the referrer's bonus.

    Pure and deterministic. The rate table is injected so a new action
    type is a configuration change. Rates are applied in decimal
    arithmetic so a float product landing just below an integer never
    loses a credit to the floor.
    """

    def __init__(self, rates: Mapping[str, float] | None = None):
        table = dict(rates if rates is not None else DEFAULT_BONUS_RATES)
        if FALLBACK_ACTION not in table:
            raise ValueError(f"Rate table needs a {FALLBACK_ACTION!r} entry")
        # str() keeps 0.15 as Decimal("0.15") rather than its binary expansion
        self._rates = {action: Decimal(str(rate)) for action, rate in table.items()}

    @property
    def action_types(self) -> list[str]:
        """Action types with a configured rate, in table order."""
        return list(self._rates)

    def rate_for(self, action_type: str) -> Decimal:
        return self._rates.get(action_type, self._rates[FALLBACK_ACTION])

    def calculate_bonus(self, action_type: str, base_credits: int | float) -> int:
        """Bonus credits for the referrer, rounded down."""
        if base_credits < 0:
            raise LedgerValidationError("Base credits cannot be negative", code="negative_credits")
        if not base_credits:
            return 0

        bonus = Decimal(str(base_credits)) * self.rate_for(action_type)
        return int(bonus.to_integral_value(rounding=ROUND_FLOOR))

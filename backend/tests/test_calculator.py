from __future__ import annotations

import math

import pytest

from credit_engine.errors import LedgerValidationError
from credit_engine.referral.calculator import ReferralCalculator
from credit_engine.settings import DEFAULT_BONUS_RATES


@pytest.mark.parametrize(
    ("action_type", "base", "expected"),
    [
        ("enrollment", 100, 20),
        ("enrollment", 150, 30),
        ("social_post", 50, 5),
        ("tech_module", 200, 30),
        ("spend_multiplier", 10, 2),
        ("coffee_wall", 19, 0),
        ("coffee_wall", 20, 1),
        ("other", 99, 9),
    ],
)
def test_calculate_bonus_uses_rate_table(action_type: str, base: int, expected: int) -> None:
    assert ReferralCalculator().calculate_bonus(action_type, base) == expected


def test_unknown_action_type_falls_back_to_other_rate() -> None:
    calculator = ReferralCalculator()

    assert calculator.calculate_bonus("mystery_action", 100) == 10
    assert calculator.rate_for("mystery_action") == calculator.rate_for("other")


def test_zero_base_yields_zero() -> None:
    assert ReferralCalculator().calculate_bonus("enrollment", 0) == 0


def test_negative_base_is_rejected() -> None:
    with pytest.raises(LedgerValidationError) as exc_info:
        ReferralCalculator().calculate_bonus("enrollment", -5)

    assert exc_info.value.code == "negative_credits"


def test_bonus_is_floor_of_rate_times_base() -> None:
    calculator = ReferralCalculator()
    for action_type, rate in DEFAULT_BONUS_RATES.items():
        for base in range(0, 500):
            bonus = calculator.calculate_bonus(action_type, base)
            assert 0 <= bonus <= base * rate + 1e-9
            # Exact decimal floor; allow for binary noise only on the reference side
            assert bonus == math.floor(round(base * rate, 9))


def test_calculation_is_deterministic() -> None:
    calculator = ReferralCalculator()
    first = [calculator.calculate_bonus("tech_module", base) for base in range(100)]
    second = [calculator.calculate_bonus("tech_module", base) for base in range(100)]
    assert first == second


def test_custom_rate_table_adds_action_type() -> None:
    calculator = ReferralCalculator({"workshop": 0.5, "other": 0.0})

    assert calculator.action_types == ["workshop", "other"]
    assert calculator.calculate_bonus("workshop", 11) == 5
    assert calculator.calculate_bonus("enrollment", 100) == 0


def test_rate_table_requires_fallback() -> None:
    with pytest.raises(ValueError, match="other"):
        ReferralCalculator({"enrollment": 0.2})

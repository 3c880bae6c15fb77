"""Referral module.

A referrer earns a percentage of the credits awarded to a user they
referred. The payout is a separate ``referral_bonus`` event that never
has a referrer of its own, so referral chains stop after one level.
"""

from credit_engine.referral.calculator import ReferralCalculator
from credit_engine.referral.service import ReferralService

__all__ = ["ReferralCalculator", "ReferralService"]

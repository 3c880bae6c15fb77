"""Credit Engine - credit ledger with referral bonuses."""

__version__ = "1.0.0"

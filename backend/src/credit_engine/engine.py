"""Wiring of the store and services into one engine object."""

from dataclasses import dataclass
from datetime import timedelta

from credit_engine.ledger.aggregation import LedgerReader
from credit_engine.ledger.reconciliation import reconcile_referral_bonuses
from credit_engine.ledger.recorder import LedgerService
from credit_engine.ledger.schemas import ReconciliationReport
from credit_engine.referral.calculator import ReferralCalculator
from credit_engine.referral.service import ReferralService
from credit_engine.settings import Settings, settings as default_settings
from credit_engine.storage import build_event_store
from credit_engine.storage.base import EventStore


@dataclass
class CreditEngine:
    store: EventStore
    referrals: ReferralService
    ledger: LedgerService
    reader: LedgerReader

    def reconcile(self) -> ReconciliationReport:
        return reconcile_referral_bonuses(self.store, self.referrals)


def build_engine(config: Settings | None = None, store: EventStore | None = None) -> CreditEngine:
    """Build an engine from settings, optionally over an existing store."""
    config = config or default_settings
    store = store or build_event_store(config)

    referrals = ReferralService(
        store,
        ReferralCalculator(config.bonus_rates),
        recent_limit=config.recent_events_limit,
    )
    ledger = LedgerService(
        store,
        referrals,
        default_enrollment_credits=config.default_enrollment_credits,
        max_batch_size=config.max_batch_size,
    )
    reader = LedgerReader(
        store,
        default_page_size=config.default_page_size,
        max_page_size=config.max_page_size,
        recent_events_limit=config.recent_events_limit,
        recent_window=timedelta(hours=config.recent_window_hours),
    )
    return CreditEngine(store=store, referrals=referrals, ledger=ledger, reader=reader)

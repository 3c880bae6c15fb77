"""Repair sweep for the gap between bonus and primary appends.

The referral bonus and the primary event are two independent appends, so
a failure between them leaves one of two traces:

- a primary event with a referrer but no linked bonus (the bonus append
  failed and was downgraded to "not awarded")
- a bonus whose ``source_event_id`` points at nothing (the primary append
  failed after the bonus was written)

The first is repaired by appending the missing bonus. The second cannot be
undone in an append-only ledger and is reported for review.
"""

from credit_engine.ledger.recorder import BULK_IMPORT_FLAG
from credit_engine.ledger.schemas import REFERRAL_BONUS, EventFilter, ReconciliationReport
from credit_engine.logging_config import get_logger
from credit_engine.referral.service import ReferralService
from credit_engine.storage.base import EventStore

logger = get_logger(__name__)


def reconcile_referral_bonuses(store: EventStore, referrals: ReferralService) -> ReconciliationReport:
    """Award missing referral bonuses and list orphaned ones.

    Idempotent: a second run finds every bonus linked and awards nothing.
    Events imported in bulk never had referrals processed and are skipped.
    """
    scanned = 0
    awarded_ids: list[str] = []

    for event in store.find(EventFilter(has_referrer=True)):
        if event.is_referral_bonus or event.metadata.get(BULK_IMPORT_FLAG):
            continue
        if event.referrer_id == event.user_id:
            continue
        scanned += 1

        expected = referrals.calculator.calculate_bonus(event.action_type, event.credits_awarded)
        if expected <= 0 or referrals.find_bonus_for_event(event.id) is not None:
            continue

        result = referrals.process_referral(
            event.referrer_id,
            event.action_type,
            event.credits_awarded,
            event.user_id,
            source_event_id=event.id,
        )
        if result.success and result.bonus_event_id:
            awarded_ids.append(result.bonus_event_id)
            logger.warning(
                "missing_referral_bonus_awarded",
                source_event_id=event.id,
                referrer_id=event.referrer_id,
                bonus=result.bonus_awarded,
            )

    orphan_ids = [
        bonus.id
        for bonus in store.find(EventFilter(action_type=REFERRAL_BONUS))
        if bonus.source_event_id and store.get(bonus.source_event_id) is None
    ]
    if orphan_ids:
        logger.warning("orphan_referral_bonuses_found", count=len(orphan_ids))

    report = ReconciliationReport(
        scanned=scanned,
        bonuses_awarded=len(awarded_ids),
        awarded_event_ids=awarded_ids,
        orphan_bonus_ids=orphan_ids,
    )
    logger.info(
        "referral_reconciliation_completed",
        scanned=report.scanned,
        awarded=report.bonuses_awarded,
        orphans=len(report.orphan_bonus_ids),
    )
    return report

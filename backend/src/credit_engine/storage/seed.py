"""Demo data for fresh development stores."""

from credit_engine.ledger.schemas import REFERRAL_BONUS, NewCreditEvent
from credit_engine.logging_config import get_logger
from credit_engine.storage.base import EventStore

logger = get_logger(__name__)


def demo_events() -> list[NewCreditEvent]:
    enrollment_1 = NewCreditEvent(
        user_id="demo_user_1",
        action_type="enrollment",
        credits_awarded=100,
        metadata={"source": "initial_seed"},
    )
    enrollment_2 = NewCreditEvent(
        user_id="demo_user_2",
        action_type="enrollment",
        credits_awarded=100,
        metadata={"source": "initial_seed"},
    )
    bonus = NewCreditEvent(
        user_id="demo_user_1",
        action_type=REFERRAL_BONUS,
        credits_awarded=20,
        metadata={"source": "initial_seed", "triggeredBy": "demo_user_3"},
        triggered_by="demo_user_3",
    )
    return [enrollment_1, enrollment_2, bonus]


def seed_demo_events(store: EventStore) -> int:
    """Append the demo events unless the store already holds data.

    Returns:
        Number of events appended
    """
    if not store.is_empty():
        logger.info("demo_seed_skipped", reason="store_not_empty")
        return 0

    stored = store.append_many(demo_events())
    logger.info("demo_seed_applied", count=len(stored), store=store.name)
    return len(stored)

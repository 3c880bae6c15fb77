"""Referral service: bonus payouts, referrer eligibility and summaries."""

from pydantic import ValidationError

from credit_engine.errors import LedgerError, LedgerValidationError, StoreError
from credit_engine.ledger.schemas import (
    REFERRAL_BONUS,
    CreditEvent,
    EventFilter,
    NewCreditEvent,
    ReferralBonusSummary,
    ReferralResult,
    ReferrerStatus,
)
from credit_engine.logging_config import get_logger
from credit_engine.referral.calculator import ReferralCalculator
from credit_engine.storage.base import EventStore

logger = get_logger(__name__)


class ReferralService:
    """Service for referral bonuses.

    Operations:
    - Award the referrer's bonus for an action of a referred user
    - Check whether an identifier may act as a referrer
    - Summarise the bonuses a user has earned
    - Look up bonuses by their causal back-reference
    """

    def __init__(
        self,
        store: EventStore,
        calculator: ReferralCalculator | None = None,
        recent_limit: int = 10,
    ):
        """Initialize referral service.

        Args:
            store: Event store bonus events are appended to
            calculator: Bonus calculator (defaults to the standard rate table)
            recent_limit: How many recent bonuses a summary includes
        """
        self.store = store
        self.calculator = calculator or ReferralCalculator()
        self.recent_limit = recent_limit
        self.logger = get_logger(__name__)

    def process_referral(
        self,
        referrer_id: str | None,
        action_type: str | None,
        base_credits: int | None,
        triggering_user_id: str | None,
        source_event_id: str | None = None,
    ) -> ReferralResult:
        """Award the referrer's bonus for one triggering action.

        Never raises: bad arguments and store failures come back as a
        result with ``success=False`` and no bonus, so the caller's own
        write is never lost to a failed side effect.

        Args:
            referrer_id: User who made the referral
            action_type: Action performed by the referred user
            base_credits: Credits awarded for that action
            triggering_user_id: The referred user
            source_event_id: Id of the primary event that triggers the bonus

        Returns:
            Referral processing result
        """
        try:
            if not referrer_id or not action_type or base_credits is None or not triggering_user_id:
                raise LedgerValidationError(
                    "Missing required parameters for referral processing",
                    code="missing_fields",
                )

            bonus_credits = self.calculator.calculate_bonus(action_type, base_credits)

            if bonus_credits <= 0:
                return ReferralResult(
                    success=True,
                    bonus_awarded=0,
                    message="No bonus credits applicable for this action type",
                )

            bonus_event = self.store.append(
                NewCreditEvent(
                    user_id=referrer_id,
                    action_type=REFERRAL_BONUS,
                    credits_awarded=bonus_credits,
                    referrer_bonus=0,
                    referrer_id=None,
                    metadata={
                        "triggeredBy": triggering_user_id,
                        "originalAction": action_type,
                        "originalCredits": base_credits,
                    },
                    source_event_id=source_event_id,
                    triggered_by=triggering_user_id,
                )
            )

        except LedgerError as exc:
            self.logger.error(
                "referral_processing_failed",
                referrer_id=referrer_id,
                triggering_user_id=triggering_user_id,
                error=exc.message,
            )
            return ReferralResult(success=False, bonus_awarded=0, error=exc.message)
        except ValidationError as exc:
            # Non-string identifiers fail event construction
            self.logger.error(
                "referral_processing_failed",
                referrer_id=repr(referrer_id),
                triggering_user_id=repr(triggering_user_id),
                error=str(exc),
            )
            return ReferralResult(success=False, bonus_awarded=0, error="Invalid referral parameters")

        self.logger.info(
            "referral_bonus_awarded",
            referrer_id=referrer_id,
            triggering_user_id=triggering_user_id,
            bonus=bonus_credits,
            bonus_event_id=bonus_event.id,
        )
        return ReferralResult(
            success=True,
            bonus_awarded=bonus_credits,
            bonus_event_id=bonus_event.id,
            message=f"Referral bonus of {bonus_credits} credits awarded to {referrer_id}",
        )

    def check_referrer(self, referrer_id: str | None) -> ReferrerStatus:
        """Classify a candidate referrer.

        ``UNKNOWN`` means the store could not answer, which callers needing
        a firm answer must not treat as ineligible.
        """
        if not referrer_id or not isinstance(referrer_id, str):
            return ReferrerStatus.INELIGIBLE

        try:
            has_history = self.store.exists(EventFilter(user_id=referrer_id))
        except StoreError as exc:
            self.logger.error("referrer_check_failed", referrer_id=referrer_id, error=exc.message)
            return ReferrerStatus.UNKNOWN

        return ReferrerStatus.ELIGIBLE if has_history else ReferrerStatus.INELIGIBLE

    def is_eligible_referrer(self, referrer_id: str | None) -> bool:
        """True if the referrer has prior ledger history. Fails closed."""
        return self.check_referrer(referrer_id) is ReferrerStatus.ELIGIBLE

    def get_referral_bonus_summary(self, user_id: str) -> ReferralBonusSummary:
        """Get total referral bonuses earned by a user.

        Args:
            user_id: User ID

        Returns:
            Bonus totals and the most recent bonus events
        """
        if not user_id:
            raise LedgerValidationError("User ID is required", code="user_id_required")

        bonus_events = self.store.find(EventFilter(user_id=user_id, action_type=REFERRAL_BONUS))

        return ReferralBonusSummary(
            user_id=user_id,
            total_bonus_credits=sum(event.credits_awarded for event in bonus_events),
            total_referrals=len(bonus_events),
            recent_bonuses=bonus_events[: self.recent_limit],
        )

    def find_bonus_for_event(self, event_id: str) -> CreditEvent | None:
        """The bonus event a primary event triggered, if any."""
        bonuses = self.store.find(
            EventFilter(source_event_id=event_id, action_type=REFERRAL_BONUS), limit=1
        )
        return bonuses[0] if bonuses else None

    def find_bonuses_triggered_by(self, user_id: str) -> list[CreditEvent]:
        """All bonus events paid out because of a given referred user."""
        return self.store.find(EventFilter(triggered_by=user_id, action_type=REFERRAL_BONUS))

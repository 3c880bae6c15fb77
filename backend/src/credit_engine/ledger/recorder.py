"""Ledger recorder: the single write path for primary credit events."""

import math
from datetime import datetime
from typing import Any

from credit_engine.errors import IneligibleReferrerError, LedgerError, LedgerValidationError, StoreError
from credit_engine.ledger.schemas import (
    REFERRAL_BONUS,
    BatchEnrollError,
    BatchEnrollItem,
    BatchEnrollResult,
    BulkInsertResult,
    NewCreditEvent,
    RecordResult,
    ReferralResult,
    ReferrerStatus,
    new_event_id,
)
from credit_engine.logging_config import get_logger
from credit_engine.referral.service import ReferralService
from credit_engine.storage.base import EventStore

logger = get_logger(__name__)

# Marks imported history; such events never had their referrals processed
BULK_IMPORT_FLAG = "bulkImport"


def _check_credits(credits_awarded: Any) -> int:
    """Validate an amount that is known to be present."""
    if isinstance(credits_awarded, bool) or not isinstance(credits_awarded, (int, float)):
        raise LedgerValidationError("Credits awarded must be a number", code="invalid_credits")
    if isinstance(credits_awarded, float) and not math.isfinite(credits_awarded):
        raise LedgerValidationError("Credits awarded must be a finite number", code="invalid_credits")
    if credits_awarded < 0:
        raise LedgerValidationError("Credits awarded cannot be negative", code="negative_credits")
    if credits_awarded != int(credits_awarded):
        raise LedgerValidationError("Credits awarded must be a whole number", code="invalid_credits")
    return int(credits_awarded)


def _check_identifiers(user_id: Any, referrer_id: Any) -> None:
    if not isinstance(user_id, str):
        raise LedgerValidationError("userId must be a string", code="invalid_user_id")
    if referrer_id is not None and not isinstance(referrer_id, str):
        raise LedgerValidationError("referrerId must be a string", code="invalid_referrer_id")


class LedgerService:
    """Records credit events and triggers referral bonuses.

    No other component writes primary (non-bonus) events. The referral
    bonus is appended before the primary event and the two appends are
    independent; ``reconcile_referral_bonuses`` repairs the gap.
    """

    def __init__(
        self,
        store: EventStore,
        referrals: ReferralService,
        default_enrollment_credits: int = 100,
        max_batch_size: int = 100,
    ):
        self.store = store
        self.referrals = referrals
        self.default_enrollment_credits = default_enrollment_credits
        self.max_batch_size = max_batch_size
        self.logger = get_logger(__name__)

    @property
    def action_types(self) -> list[str]:
        """Action types a caller may record (everything but referral_bonus)."""
        return [action for action in self.referrals.calculator.action_types if action != REFERRAL_BONUS]

    def _validate_request(
        self,
        user_id: str | None,
        action_type: str | None,
        credits_awarded: Any,
        referrer_id: str | None,
    ) -> int:
        # Order matters: the first violation is the one reported
        if not user_id or not action_type or credits_awarded is None:
            raise LedgerValidationError(
                "Missing required fields: userId, actionType, creditsAwarded",
                code="missing_fields",
            )
        credits = _check_credits(credits_awarded)
        _check_identifiers(user_id, referrer_id)
        if action_type not in self.action_types:
            raise LedgerValidationError(
                f"Invalid action type: {action_type}",
                code="invalid_action_type",
            )
        if referrer_id and referrer_id == user_id:
            raise LedgerValidationError("Users cannot refer themselves", code="self_referral")
        return credits

    def record_event(
        self,
        user_id: str | None,
        action_type: str | None,
        credits_awarded: int | float | None,
        referrer_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> RecordResult:
        """Record a credit event in the ledger.

        Args:
            user_id: User receiving credits
            action_type: Type of action performed
            credits_awarded: Number of credits awarded (0 allowed)
            referrer_id: Optional referrer, credited with a separate bonus event
            metadata: Optional free-form metadata

        Returns:
            Persisted event, referral processing result and confirmation message

        Raises:
            LedgerValidationError: Request rejected, nothing was written
            StoreError: The primary event could not be persisted
        """
        credits = self._validate_request(user_id, action_type, credits_awarded, referrer_id)

        event_id = new_event_id()
        referrer_bonus = 0
        referral_result: ReferralResult | None = None

        if referrer_id and referrer_id != user_id:
            referral_result = self.referrals.process_referral(
                referrer_id, action_type, credits, user_id, source_event_id=event_id
            )
            referrer_bonus = referral_result.bonus_awarded if referral_result.success else 0

        event = self.store.append(
            NewCreditEvent(
                id=event_id,
                user_id=user_id,
                action_type=action_type,
                credits_awarded=credits,
                referrer_bonus=referrer_bonus,
                referrer_id=referrer_id or None,
                metadata=dict(metadata or {}),
            )
        )

        self.logger.info(
            "credit_event_recorded",
            event_id=event.id,
            user_id=user_id,
            action_type=action_type,
            credits=credits,
            referrer_id=event.referrer_id,
            referrer_bonus=referrer_bonus,
        )

        return RecordResult(
            event=event,
            referral_processing=referral_result,
            message=f"Credit event recorded: {credits} credits awarded to {user_id}",
        )

    def enroll(
        self,
        user_id: str | None,
        referrer_id: str | None = None,
        action_type: str = "enrollment",
        credits_awarded: int | None = None,
        metadata: dict[str, Any] | None = None,
        source: str = "api",
    ) -> RecordResult:
        """Enroll a user, awarding enrollment credits and a referral bonus.

        Unlike ``record_event``, the enrollment path requires the referrer
        to have ledger history and rejects the whole request otherwise.

        Raises:
            LedgerValidationError: Missing user or self-referral
            IneligibleReferrerError: Referrer has no ledger history
            StoreError: Eligibility could not be determined or the write failed
        """
        if not user_id:
            raise LedgerValidationError("userId is required", code="user_id_required")
        _check_identifiers(user_id, referrer_id)

        if referrer_id:
            if referrer_id == user_id:
                raise LedgerValidationError("Users cannot refer themselves", code="self_referral")
            self._require_eligible(referrer_id)

        return self.record_event(
            user_id=user_id,
            action_type=action_type,
            credits_awarded=self.default_enrollment_credits if credits_awarded is None else credits_awarded,
            referrer_id=referrer_id,
            metadata={**(metadata or {}), "enrollmentSource": source},
        )

    def _require_eligible(self, referrer_id: str) -> None:
        status = self.referrals.check_referrer(referrer_id)
        if status is ReferrerStatus.UNKNOWN:
            raise StoreError("Could not verify referrer")
        if status is ReferrerStatus.INELIGIBLE:
            self.logger.info("referrer_rejected", referrer_id=referrer_id)
            raise IneligibleReferrerError(referrer_id)

    def batch_enroll(self, enrollments: list[dict[str, Any]], source: str = "batch_api") -> BatchEnrollResult:
        """Enroll many users; each item succeeds or fails on its own.

        A self-referral inside a batch is dropped rather than rejected.
        """
        if not isinstance(enrollments, list) or not enrollments:
            raise LedgerValidationError(
                "enrollments array is required and cannot be empty", code="empty_batch"
            )
        if len(enrollments) > self.max_batch_size:
            raise LedgerValidationError(
                f"Maximum {self.max_batch_size} enrollments per batch", code="batch_too_large"
            )

        results: list[BatchEnrollItem] = []
        errors: list[BatchEnrollError] = []

        for index, enrollment in enumerate(enrollments):
            if not isinstance(enrollment, dict):
                errors.append(BatchEnrollError(index=index, error="Enrollment must be an object"))
                continue

            user_id = enrollment.get("userId")
            referrer_id = enrollment.get("referrerId")
            if referrer_id == user_id:
                referrer_id = None
            metadata = enrollment.get("metadata")
            if not isinstance(metadata, dict):
                metadata = {}

            try:
                result = self.enroll(
                    user_id=user_id,
                    referrer_id=referrer_id,
                    action_type=enrollment.get("actionType") or "enrollment",
                    credits_awarded=enrollment.get("creditsAwarded"),
                    metadata={**metadata, "batchIndex": index},
                    source=source,
                )
            except LedgerError as exc:
                errors.append(BatchEnrollError(index=index, error=exc.message, enrollment=enrollment))
                continue

            referral = result.referral_processing
            results.append(
                BatchEnrollItem(
                    index=index,
                    user_id=result.event.user_id,
                    credits_awarded=result.event.credits_awarded,
                    event_id=result.event.id,
                    referral_bonus=referral.bonus_awarded if referral else 0,
                )
            )

        self.logger.info("batch_enrollment_processed", processed=len(results), failed=len(errors))
        return BatchEnrollResult(
            processed=len(results),
            failed=len(errors),
            results=results,
            errors=errors,
        )

    def bulk_record_events(self, events: list[dict[str, Any]]) -> BulkInsertResult:
        """Import historical events without processing referrals.

        Every item is validated before anything is written. Items may carry
        their own ``timestamp`` (ISO string or datetime).
        """
        if not isinstance(events, list) or not events:
            raise LedgerValidationError(
                "Events array is required and cannot be empty", code="empty_batch"
            )

        prepared: list[NewCreditEvent] = []
        for index, item in enumerate(events):
            if not isinstance(item, dict):
                raise LedgerValidationError(f"Event {index} must be an object", code="missing_fields")
            user_id = item.get("userId")
            action_type = item.get("actionType")
            credits_awarded = item.get("creditsAwarded")

            if not user_id or not action_type or credits_awarded is None:
                raise LedgerValidationError(
                    f"Event {index} must have userId, actionType, and creditsAwarded",
                    code="missing_fields",
                )
            credits = _check_credits(credits_awarded)

            is_bonus = action_type == REFERRAL_BONUS
            _check_identifiers(user_id, None if is_bonus else item.get("referrerId") or None)
            if not is_bonus and action_type not in self.action_types:
                raise LedgerValidationError(
                    f"Event {index} has invalid action type: {action_type}",
                    code="invalid_action_type",
                )

            timestamp = item.get("timestamp")
            if isinstance(timestamp, str):
                try:
                    timestamp = datetime.fromisoformat(timestamp)
                except ValueError as exc:
                    raise LedgerValidationError(
                        f"Event {index} has an invalid timestamp", code="invalid_timestamp"
                    ) from exc

            referrer_id = None if is_bonus else item.get("referrerId") or None
            if referrer_id == user_id:
                referrer_id = None
            metadata = item.get("metadata")
            if not isinstance(metadata, dict):
                metadata = {}

            prepared.append(
                NewCreditEvent(
                    user_id=user_id,
                    action_type=action_type,
                    credits_awarded=credits,
                    referrer_bonus=0,
                    referrer_id=referrer_id,
                    metadata={**metadata, BULK_IMPORT_FLAG: True},
                    timestamp=timestamp,
                )
            )

        stored = self.store.append_many(prepared)
        self.logger.info("bulk_events_recorded", count=len(stored))
        return BulkInsertResult(
            inserted_count=len(stored),
            inserted_ids=[event.id for event in stored],
        )

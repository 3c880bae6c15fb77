from __future__ import annotations

from datetime import datetime

import pytest

from credit_engine.engine import CreditEngine, build_engine
from credit_engine.errors import IneligibleReferrerError, LedgerValidationError, StoreError
from credit_engine.ledger.recorder import BULK_IMPORT_FLAG
from credit_engine.ledger.schemas import REFERRAL_BONUS, EventFilter
from credit_engine.storage import MemoryEventStore


class FailingBonusStore(MemoryEventStore):
    """Accepts primary events but refuses referral bonuses."""

    def append(self, event):
        if event.action_type == REFERRAL_BONUS:
            raise StoreError("bonus write failed")
        return super().append(event)


class FailingExistsStore(MemoryEventStore):
    def exists(self, filters=None):
        raise StoreError("store offline")


# ==================== VALIDATION ====================


@pytest.mark.parametrize(
    ("kwargs", "code"),
    [
        ({"user_id": None, "action_type": "enrollment", "credits_awarded": 10}, "missing_fields"),
        ({"user_id": "u1", "action_type": "", "credits_awarded": 10}, "missing_fields"),
        ({"user_id": "u1", "action_type": "enrollment", "credits_awarded": None}, "missing_fields"),
        ({"user_id": "u1", "action_type": "enrollment", "credits_awarded": -1}, "negative_credits"),
        ({"user_id": "u1", "action_type": "enrollment", "credits_awarded": 2.5}, "invalid_credits"),
        ({"user_id": "u1", "action_type": "enrollment", "credits_awarded": "10"}, "invalid_credits"),
        ({"user_id": "u1", "action_type": "enrollment", "credits_awarded": True}, "invalid_credits"),
        ({"user_id": "u1", "action_type": "enrollment", "credits_awarded": float("nan")}, "invalid_credits"),
        ({"user_id": "u1", "action_type": "enrollment", "credits_awarded": float("inf")}, "invalid_credits"),
        ({"user_id": 42, "action_type": "enrollment", "credits_awarded": 10}, "invalid_user_id"),
        (
            {"user_id": "u1", "action_type": "enrollment", "credits_awarded": 10, "referrer_id": 5},
            "invalid_referrer_id",
        ),
        ({"user_id": "u1", "action_type": "bogus", "credits_awarded": 10}, "invalid_action_type"),
        ({"user_id": "u1", "action_type": REFERRAL_BONUS, "credits_awarded": 10}, "invalid_action_type"),
        (
            {"user_id": "u1", "action_type": "enrollment", "credits_awarded": 10, "referrer_id": "u1"},
            "self_referral",
        ),
    ],
)
def test_record_event_rejects_invalid_requests(engine: CreditEngine, kwargs: dict, code: str) -> None:
    with pytest.raises(LedgerValidationError) as exc_info:
        engine.ledger.record_event(**kwargs)

    assert exc_info.value.code == code
    assert engine.store.count() == 0


def test_validation_reports_first_violation(engine: CreditEngine) -> None:
    # Negative credits and an unknown action type: credits are checked first
    with pytest.raises(LedgerValidationError) as exc_info:
        engine.ledger.record_event("u1", "bogus", -5)

    assert exc_info.value.code == "negative_credits"


def test_zero_credits_are_accepted(engine: CreditEngine) -> None:
    result = engine.ledger.record_event("u1", "social_post", 0)

    assert result.event.credits_awarded == 0
    assert engine.store.count() == 1


def test_whole_float_credits_are_accepted(engine: CreditEngine) -> None:
    result = engine.ledger.record_event("u1", "social_post", 10.0)

    assert result.event.credits_awarded == 10


# ==================== RECORDING ====================


def test_record_without_referrer(engine: CreditEngine) -> None:
    result = engine.ledger.record_event("u1", "enrollment", 100, metadata={"campaign": "spring"})

    assert result.referral_processing is None
    assert result.message == "Credit event recorded: 100 credits awarded to u1"
    assert result.event.referrer_id is None
    assert result.event.referrer_bonus == 0
    assert result.event.metadata == {"campaign": "spring"}

    summary = engine.reader.get_user_credit_total("u1")
    assert summary.total_credits == 100
    assert summary.total_events == 1


def test_record_with_referrer_links_bonus_to_primary_event(engine: CreditEngine) -> None:
    result = engine.ledger.record_event("u2", "tech_module", 200, referrer_id="u1")

    referral = result.referral_processing
    assert referral.success is True
    assert referral.bonus_awarded == 30
    assert result.event.referrer_id == "u1"
    assert result.event.referrer_bonus == 30

    bonus = engine.referrals.find_bonus_for_event(result.event.id)
    assert bonus is not None
    assert bonus.id == referral.bonus_event_id
    assert bonus.user_id == "u1"
    assert bonus.triggered_by == "u2"
    assert bonus.referrer_id is None
    assert bonus.referrer_bonus == 0


def test_record_with_zero_bonus_writes_only_primary(engine: CreditEngine) -> None:
    result = engine.ledger.record_event("u2", "coffee_wall", 19, referrer_id="u1")

    assert result.referral_processing.bonus_awarded == 0
    assert result.event.referrer_bonus == 0
    assert engine.store.count() == 1


def test_bonus_failure_does_not_lose_primary_event(config) -> None:
    engine = build_engine(config, store=FailingBonusStore())

    result = engine.ledger.record_event("u2", "enrollment", 100, referrer_id="u1")

    assert result.referral_processing.success is False
    assert result.event.referrer_bonus == 0
    assert engine.store.count() == 1
    assert engine.store.count(EventFilter(action_type=REFERRAL_BONUS)) == 0


def test_record_event_does_not_check_referrer_history(engine: CreditEngine) -> None:
    result = engine.ledger.record_event("u2", "enrollment", 100, referrer_id="newcomer")

    assert result.referral_processing.bonus_awarded == 20


# ==================== ENROLLMENT ====================


def test_scenario_enroll_with_referrer(engine: CreditEngine) -> None:
    engine.ledger.enroll("u1")
    result = engine.ledger.enroll("u2", referrer_id="u1", credits_awarded=150)

    assert result.referral_processing.bonus_awarded == 30
    assert engine.reader.get_user_credit_total("u1").total_credits == 130
    assert engine.reader.get_user_credit_total("u2").total_credits == 150

    bonuses = engine.store.find(EventFilter(action_type=REFERRAL_BONUS))
    assert len(bonuses) == 1
    assert bonuses[0].user_id == "u1"
    assert bonuses[0].source_event_id == result.event.id


def test_enroll_uses_default_credits_and_tags_source(engine: CreditEngine) -> None:
    result = engine.ledger.enroll("u1", source="cli")

    assert result.event.credits_awarded == 100
    assert result.event.action_type == "enrollment"
    assert result.event.metadata["enrollmentSource"] == "cli"


def test_scenario_self_referral_is_rejected(engine: CreditEngine) -> None:
    engine.ledger.enroll("u1")

    with pytest.raises(LedgerValidationError) as exc_info:
        engine.ledger.enroll("u1", referrer_id="u1")

    assert exc_info.value.code == "self_referral"
    assert engine.store.count(EventFilter(action_type=REFERRAL_BONUS)) == 0
    assert engine.store.count() == 1


def test_scenario_ineligible_referrer_writes_nothing(engine: CreditEngine) -> None:
    with pytest.raises(IneligibleReferrerError) as exc_info:
        engine.ledger.enroll("u3", referrer_id="ghost")

    assert exc_info.value.message == "Invalid referrer ID"
    assert exc_info.value.code == "ineligible_referrer"
    assert engine.store.count() == 0


def test_enroll_requires_user_id(engine: CreditEngine) -> None:
    with pytest.raises(LedgerValidationError) as exc_info:
        engine.ledger.enroll("")

    assert exc_info.value.code == "user_id_required"


def test_enroll_rejects_non_string_referrer_before_eligibility_check(engine: CreditEngine) -> None:
    with pytest.raises(LedgerValidationError) as exc_info:
        engine.ledger.enroll("u2", referrer_id=["u1"])

    assert exc_info.value.code == "invalid_referrer_id"
    assert engine.store.count() == 0


def test_enroll_refuses_when_eligibility_is_unknown(config) -> None:
    engine = build_engine(config, store=FailingExistsStore())

    with pytest.raises(StoreError):
        engine.ledger.enroll("u2", referrer_id="u1")
    assert engine.store.count() == 0


# ==================== BATCH ====================


def test_batch_enroll_items_are_independent(engine: CreditEngine) -> None:
    engine.ledger.enroll("u1")

    result = engine.ledger.batch_enroll(
        [
            {"userId": "a", "referrerId": "u1"},
            {"userId": "b", "referrerId": "ghost"},
            {"referrerId": "u1"},
            {"userId": "c", "creditsAwarded": 50, "metadata": {"cohort": 7}},
            "not an object",
        ]
    )

    assert result.processed == 2
    assert result.failed == 3
    assert [item.index for item in result.results] == [0, 3]
    assert result.results[0].referral_bonus == 20
    assert result.results[1].credits_awarded == 50
    assert {error.index: error.error for error in result.errors} == {
        1: "Invalid referrer ID",
        2: "userId is required",
        4: "Enrollment must be an object",
    }

    event = engine.store.get(result.results[1].event_id)
    assert event.metadata == {"cohort": 7, "batchIndex": 3, "enrollmentSource": "batch_api"}


def test_batch_enroll_reports_non_string_user_id_per_item(engine: CreditEngine) -> None:
    engine.ledger.enroll("u1")

    result = engine.ledger.batch_enroll([{"userId": 42, "referrerId": "u1"}, {"userId": "u5"}])

    assert result.processed == 1
    assert result.failed == 1
    assert result.errors[0].index == 0
    assert result.errors[0].error == "userId must be a string"
    assert result.results[0].user_id == "u5"
    assert engine.store.count(EventFilter(action_type=REFERRAL_BONUS)) == 0


def test_batch_enroll_reports_non_string_referrer_id_per_item(engine: CreditEngine) -> None:
    result = engine.ledger.batch_enroll([{"userId": "u7", "referrerId": 5}, {"userId": "u8"}])

    assert result.processed == 1
    assert result.failed == 1
    assert result.errors[0].index == 0
    assert result.errors[0].error == "referrerId must be a string"
    assert result.results[0].user_id == "u8"
    assert engine.store.count() == 1


def test_batch_enroll_drops_self_referral(engine: CreditEngine) -> None:
    result = engine.ledger.batch_enroll([{"userId": "a", "referrerId": "a"}])

    assert result.processed == 1
    assert result.results[0].referral_bonus == 0
    assert engine.store.get(result.results[0].event_id).referrer_id is None


@pytest.mark.parametrize(("enrollments", "code"), [([], "empty_batch"), (None, "empty_batch")])
def test_batch_enroll_requires_items(engine: CreditEngine, enrollments, code: str) -> None:
    with pytest.raises(LedgerValidationError) as exc_info:
        engine.ledger.batch_enroll(enrollments)

    assert exc_info.value.code == code


def test_batch_enroll_enforces_maximum(engine: CreditEngine) -> None:
    with pytest.raises(LedgerValidationError) as exc_info:
        engine.ledger.batch_enroll([{"userId": f"u{i}"} for i in range(101)])

    assert exc_info.value.code == "batch_too_large"
    assert engine.store.count() == 0


# ==================== BULK IMPORT ====================


def test_bulk_import_keeps_timestamps_and_skips_referrals(engine: CreditEngine) -> None:
    result = engine.ledger.bulk_record_events(
        [
            {"userId": "u1", "actionType": "enrollment", "creditsAwarded": 100, "timestamp": "2024-01-02T03:04:05"},
            {"userId": "u2", "actionType": "enrollment", "creditsAwarded": 100, "referrerId": "u1"},
            {"userId": "u1", "actionType": REFERRAL_BONUS, "creditsAwarded": 20, "referrerId": "u9"},
        ]
    )

    assert result.inserted_count == 3
    first, second, bonus = (engine.store.get(event_id) for event_id in result.inserted_ids)
    assert first.timestamp == datetime(2024, 1, 2, 3, 4, 5)
    assert first.metadata[BULK_IMPORT_FLAG] is True
    assert second.referrer_id == "u1"
    assert second.referrer_bonus == 0
    assert bonus.referrer_id is None
    assert engine.store.count(EventFilter(action_type=REFERRAL_BONUS)) == 1


@pytest.mark.parametrize(
    ("item", "code"),
    [
        ({"userId": "u1", "actionType": "enrollment"}, "missing_fields"),
        ({"userId": "u1", "actionType": "bogus", "creditsAwarded": 1}, "invalid_action_type"),
        ({"userId": "u1", "actionType": "enrollment", "creditsAwarded": -1}, "negative_credits"),
        ({"userId": "u1", "actionType": "enrollment", "creditsAwarded": 1, "timestamp": "yesterday"}, "invalid_timestamp"),
        ({"userId": 7, "actionType": "enrollment", "creditsAwarded": 1}, "invalid_user_id"),
        ({"userId": "u1", "actionType": "enrollment", "creditsAwarded": float("nan")}, "invalid_credits"),
        ("u1", "missing_fields"),
    ],
)
def test_bulk_import_is_all_or_nothing(engine: CreditEngine, item, code: str) -> None:
    valid = {"userId": "u0", "actionType": "enrollment", "creditsAwarded": 100}

    with pytest.raises(LedgerValidationError) as exc_info:
        engine.ledger.bulk_record_events([valid, item])

    assert exc_info.value.code == code
    assert engine.store.count() == 0

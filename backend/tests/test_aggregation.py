from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from credit_engine.engine import CreditEngine
from credit_engine.errors import LedgerValidationError
from credit_engine.ledger.schemas import NewCreditEvent

NOW = datetime(2025, 6, 1, 12, 0, 0)


def _append(engine: CreditEngine, user_id: str, action_type: str, credits: int, hours_ago: float, **extra) -> None:
    engine.store.append(
        NewCreditEvent(
            user_id=user_id,
            action_type=action_type,
            credits_awarded=credits,
            timestamp=NOW - timedelta(hours=hours_ago),
            **extra,
        )
    )


@pytest.fixture
def history(engine: CreditEngine) -> CreditEngine:
    _append(engine, "u1", "enrollment", 100, 72)
    _append(engine, "u1", "social_post", 10, 48)
    _append(engine, "u2", "enrollment", 150, 30, referrer_id="u1", referrer_bonus=30)
    _append(engine, "u1", "referral_bonus", 30, 30)
    _append(engine, "u1", "social_post", 5, 2)
    _append(engine, "u3", "tech_module", 40, 1)
    return engine


def test_user_total_breaks_down_by_action(history: CreditEngine) -> None:
    summary = history.reader.get_user_credit_total("u1")

    assert summary.total_credits == 145
    assert summary.total_events == 4
    assert summary.credits_by_action["social_post"].count == 2
    assert summary.credits_by_action["social_post"].total_credits == 15
    assert summary.credits_by_action["referral_bonus"].total_credits == 30
    assert summary.last_activity == NOW - timedelta(hours=2)
    assert [event.credits_awarded for event in summary.recent_events] == [5, 30, 10, 100]


def test_user_total_for_unknown_user_is_empty(engine: CreditEngine) -> None:
    summary = engine.reader.get_user_credit_total("nobody")

    assert summary.total_credits == 0
    assert summary.total_events == 0
    assert summary.credits_by_action == {}
    assert summary.last_activity is None
    assert summary.recent_events == []


def test_user_total_requires_user_id(engine: CreditEngine) -> None:
    with pytest.raises(LedgerValidationError) as exc_info:
        engine.reader.get_user_credit_total("")

    assert exc_info.value.code == "user_id_required"


def test_user_total_recent_events_are_capped(engine: CreditEngine) -> None:
    for hours in range(15):
        _append(engine, "busy", "social_post", 1, hours)

    summary = engine.reader.get_user_credit_total("busy")

    assert summary.total_events == 15
    assert len(summary.recent_events) == 10


def test_reads_are_idempotent(history: CreditEngine) -> None:
    first = history.reader.get_user_credit_total("u1")
    second = history.reader.get_user_credit_total("u1")

    assert first == second
    assert history.reader.get_system_stats(now=NOW) == history.reader.get_system_stats(now=NOW)


def test_events_are_paginated_newest_first(history: CreditEngine) -> None:
    page = history.reader.get_credit_events(limit=2, skip=1)

    assert [event.user_id for event in page.events] == ["u1", "u1"]
    assert [event.credits_awarded for event in page.events] == [5, 30]
    assert page.pagination.total_count == 6
    assert page.pagination.limit == 2
    assert page.pagination.skip == 1
    assert page.pagination.has_more is True


def test_last_page_has_no_more(history: CreditEngine) -> None:
    page = history.reader.get_credit_events(limit=4, skip=4)

    assert len(page.events) == 2
    assert page.pagination.has_more is False


def test_limit_is_clamped(history: CreditEngine) -> None:
    assert history.reader.get_credit_events(limit=500).pagination.limit == 100
    assert history.reader.get_credit_events(limit=0).pagination.limit == 1
    assert history.reader.get_credit_events(limit=-3).pagination.limit == 1
    assert history.reader.get_credit_events().pagination.limit == 50


def test_events_filter_by_user_action_and_referrer(history: CreditEngine) -> None:
    assert history.reader.get_credit_events(user_id="u1", action_type="social_post").pagination.total_count == 2
    referred = history.reader.get_credit_events(referrer_id="u1")
    assert [event.user_id for event in referred.events] == ["u2"]


def test_date_bounds_are_inclusive(history: CreditEngine) -> None:
    page = history.reader.get_credit_events(
        start_date=NOW - timedelta(hours=48),
        end_date=(NOW - timedelta(hours=30)).isoformat(),
    )

    assert page.pagination.total_count == 3


def test_aware_date_bounds_are_normalized(history: CreditEngine) -> None:
    start = (NOW - timedelta(hours=3)).replace(tzinfo=timezone.utc).astimezone(timezone(timedelta(hours=2)))

    page = history.reader.get_credit_events(start_date=start.isoformat())

    assert page.pagination.total_count == 2


@pytest.mark.parametrize(
    "kwargs",
    [
        {"start_date": "not-a-date"},
        {"end_date": "2025-13-45"},
        {"start_date": "2025-06-02", "end_date": "2025-06-01"},
        {"skip": -1},
    ],
)
def test_invalid_filters_are_rejected(history: CreditEngine, kwargs: dict) -> None:
    with pytest.raises(LedgerValidationError) as exc_info:
        history.reader.get_credit_events(**kwargs)

    assert exc_info.value.code == "invalid_filter"


def test_system_stats(history: CreditEngine) -> None:
    stats = history.reader.get_system_stats(now=NOW)

    assert stats.total_credits == 335
    assert stats.total_events == 6
    assert stats.unique_users == 3
    assert stats.recent_activity == 2
    assert list(stats.credits_by_action) == ["enrollment", "tech_module", "referral_bonus", "social_post"]
    assert stats.credits_by_action["enrollment"].total_credits == 250
    assert stats.credits_by_action["enrollment"].event_count == 2


def test_system_stats_on_empty_store(engine: CreditEngine) -> None:
    stats = engine.reader.get_system_stats()

    assert stats.total_credits == 0
    assert stats.total_events == 0
    assert stats.unique_users == 0
    assert stats.recent_activity == 0
    assert stats.credits_by_action == {}


def test_system_stats_match_on_sql_store(sql_engine: CreditEngine) -> None:
    _append(sql_engine, "u1", "enrollment", 100, 30)
    _append(sql_engine, "u2", "social_post", 10, 1)
    _append(sql_engine, "u2", "social_post", 10, 0.5)

    stats = sql_engine.reader.get_system_stats(now=NOW)

    assert stats.total_credits == 120
    assert stats.unique_users == 2
    assert stats.recent_activity == 2
    assert list(stats.credits_by_action) == ["enrollment", "social_post"]

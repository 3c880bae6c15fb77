"""Read-side aggregation over the event log. Nothing here writes."""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any

from credit_engine.clock import as_naive_utc, utcnow
from credit_engine.errors import LedgerValidationError
from credit_engine.ledger.schemas import (
    ActionBreakdown,
    ActionStats,
    EventFilter,
    EventPage,
    Pagination,
    SystemStats,
    UserCreditSummary,
)
from credit_engine.logging_config import get_logger
from credit_engine.storage.base import EventStore

logger = get_logger(__name__)


def _parse_date(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_naive_utc(value)
    if isinstance(value, str):
        try:
            return as_naive_utc(datetime.fromisoformat(value))
        except ValueError:
            pass
    raise LedgerValidationError(f"Invalid {field}: {value!r}", code="invalid_filter")


class LedgerReader:
    """Per-user summaries, filtered listings and system statistics."""

    def __init__(
        self,
        store: EventStore,
        default_page_size: int = 50,
        max_page_size: int = 100,
        recent_events_limit: int = 10,
        recent_window: timedelta = timedelta(hours=24),
    ):
        self.store = store
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.recent_events_limit = recent_events_limit
        self.recent_window = recent_window

    def get_user_credit_total(self, user_id: str) -> UserCreditSummary:
        """Get total credits for a specific user.

        Args:
            user_id: User ID to get credits for

        Returns:
            Totals, per-action breakdown and the most recent events
        """
        if not user_id:
            raise LedgerValidationError("User ID is required", code="user_id_required")

        events = self.store.find(EventFilter(user_id=user_id))

        breakdown: dict[str, ActionBreakdown] = defaultdict(ActionBreakdown)
        for event in events:
            entry = breakdown[event.action_type]
            entry.count += 1
            entry.total_credits += event.credits_awarded

        return UserCreditSummary(
            user_id=user_id,
            total_credits=sum(event.credits_awarded for event in events),
            total_events=len(events),
            credits_by_action=dict(breakdown),
            last_activity=events[0].timestamp if events else None,
            recent_events=events[: self.recent_events_limit],
        )

    def get_credit_events(
        self,
        user_id: str | None = None,
        action_type: str | None = None,
        referrer_id: str | None = None,
        start_date: datetime | str | None = None,
        end_date: datetime | str | None = None,
        limit: int | None = None,
        skip: int = 0,
    ) -> EventPage:
        """Get credit events with filtering and pagination.

        ``limit`` is clamped to ``1..max_page_size``; the effective value is
        what ``pagination.limit`` reports.
        """
        start = _parse_date(start_date, "startDate")
        end = _parse_date(end_date, "endDate")
        if start and end and start > end:
            raise LedgerValidationError("startDate must not be after endDate", code="invalid_filter")
        if skip is None:
            skip = 0
        if skip < 0:
            raise LedgerValidationError("skip cannot be negative", code="invalid_filter")

        if limit is None:
            limit = self.default_page_size
        limit = max(1, min(limit, self.max_page_size))

        filters = EventFilter(
            user_id=user_id or None,
            action_type=action_type or None,
            referrer_id=referrer_id or None,
            start_date=start,
            end_date=end,
        )
        events = self.store.find(filters, limit=limit, skip=skip)
        total_count = self.store.count(filters)

        return EventPage(
            events=events,
            pagination=Pagination(
                total_count=total_count,
                limit=limit,
                skip=skip,
                has_more=(skip + len(events)) < total_count,
            ),
        )

    def get_system_stats(self, now: datetime | None = None) -> SystemStats:
        """Get system-wide credit statistics.

        Args:
            now: Reference time for the recent-activity window (defaults to now)
        """
        now = as_naive_utc(now) if now else utcnow()

        by_action = self.store.totals_by_action()
        recent_activity = self.store.count(EventFilter(start_date=now - self.recent_window))

        stats = SystemStats(
            total_credits=sum(row.total_credits for row in by_action),
            total_events=sum(row.event_count for row in by_action),
            unique_users=self.store.distinct_user_count(),
            recent_activity=recent_activity,
            credits_by_action={
                row.action_type: ActionStats(total_credits=row.total_credits, event_count=row.event_count)
                for row in by_action
            },
        )
        logger.debug("system_stats_computed", total_events=stats.total_events)
        return stats

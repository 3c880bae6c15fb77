"""In-memory event store for development, demos and tests."""

import threading
from collections import defaultdict

from credit_engine.clock import as_naive_utc, utcnow
from credit_engine.errors import StoreError
from credit_engine.ledger.schemas import ActionTotal, CreditEvent, EventFilter, NewCreditEvent
from credit_engine.logging_config import get_logger
from credit_engine.storage.base import EventStore

logger = get_logger(__name__)


def _matches(event: CreditEvent, filters: EventFilter) -> bool:
    if filters.user_id is not None and event.user_id != filters.user_id:
        return False
    if filters.action_type is not None and event.action_type != filters.action_type:
        return False
    if filters.referrer_id is not None and event.referrer_id != filters.referrer_id:
        return False
    if filters.source_event_id is not None and event.source_event_id != filters.source_event_id:
        return False
    if filters.triggered_by is not None and event.triggered_by != filters.triggered_by:
        return False
    if filters.has_referrer is not None and (event.referrer_id is not None) != filters.has_referrer:
        return False
    if filters.start_date is not None and event.timestamp < as_naive_utc(filters.start_date):
        return False
    if filters.end_date is not None and event.timestamp > as_naive_utc(filters.end_date):
        return False
    return True


class MemoryEventStore(EventStore):
    """Process-local store backed by a list.

    Appends are serialised with a lock; reads work on a snapshot so they
    never block writers for longer than a list copy.
    """

    name = "memory"

    def __init__(self) -> None:
        self._events: list[CreditEvent] = []
        self._by_id: dict[str, CreditEvent] = {}
        self._lock = threading.Lock()

    def _materialize(self, event: NewCreditEvent) -> CreditEvent:
        if event.id in self._by_id:
            raise StoreError(f"Duplicate event id {event.id}")
        timestamp = as_naive_utc(event.timestamp) if event.timestamp else utcnow()
        return CreditEvent(**event.model_dump(exclude={"timestamp"}), timestamp=timestamp)

    def append(self, event: NewCreditEvent) -> CreditEvent:
        with self._lock:
            stored = self._materialize(event)
            self._events.append(stored)
            self._by_id[stored.id] = stored
        logger.debug("memory_event_appended", event_id=stored.id, user_id=stored.user_id)
        return stored

    def append_many(self, events: list[NewCreditEvent]) -> list[CreditEvent]:
        with self._lock:
            ids = [event.id for event in events]
            if len(set(ids)) != len(ids):
                raise StoreError("Duplicate event id in batch")
            stored = [self._materialize(event) for event in events]
            for item in stored:
                self._events.append(item)
                self._by_id[item.id] = item
        return stored

    def _snapshot(self, filters: EventFilter | None) -> list[CreditEvent]:
        with self._lock:
            events = list(self._events)
        if filters is not None:
            events = [event for event in events if _matches(event, filters)]
        return events

    def get(self, event_id: str) -> CreditEvent | None:
        return self._by_id.get(event_id)

    def find(
        self,
        filters: EventFilter | None = None,
        limit: int | None = None,
        skip: int = 0,
    ) -> list[CreditEvent]:
        indexed = list(enumerate(self._snapshot(filters)))
        # Newest first; insertion order breaks timestamp ties
        indexed.sort(key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
        events = [event for _, event in indexed][skip:]
        if limit is not None:
            events = events[:limit]
        return events

    def count(self, filters: EventFilter | None = None) -> int:
        return len(self._snapshot(filters))

    def exists(self, filters: EventFilter | None = None) -> bool:
        return self.count(filters) > 0

    def distinct_user_count(self, filters: EventFilter | None = None) -> int:
        return len({event.user_id for event in self._snapshot(filters)})

    def sum_credits(self, filters: EventFilter | None = None) -> int:
        return sum(event.credits_awarded for event in self._snapshot(filters))

    def totals_by_action(self, filters: EventFilter | None = None) -> list[ActionTotal]:
        credits: dict[str, int] = defaultdict(int)
        counts: dict[str, int] = defaultdict(int)
        for event in self._snapshot(filters):
            credits[event.action_type] += event.credits_awarded
            counts[event.action_type] += 1

        rows = [
            ActionTotal(action_type=action, total_credits=credits[action], event_count=counts[action])
            for action in credits
        ]
        rows.sort(key=lambda row: (-row.total_credits, row.action_type))
        return rows

    def clear(self) -> None:
        """Drop every event. Test and demo helper only."""
        with self._lock:
            self._events.clear()
            self._by_id.clear()

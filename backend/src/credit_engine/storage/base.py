"""Event store capability interface.

Both backends (SQL and in-memory) implement the same contract:

- events are append-only; there is no update or delete
- the store assigns ``timestamp`` unless the new event carries one
- every listing is newest-first, ties broken by insertion order
"""

from abc import ABC, abstractmethod

from credit_engine.ledger.schemas import ActionTotal, CreditEvent, EventFilter, NewCreditEvent


class EventStore(ABC):
    """Durable append and query of credit events."""

    name: str = "abstract"

    @abstractmethod
    def append(self, event: NewCreditEvent) -> CreditEvent:
        """Persist one event and return it with its timestamp."""

    @abstractmethod
    def append_many(self, events: list[NewCreditEvent]) -> list[CreditEvent]:
        """Persist several events in one unit of work."""

    @abstractmethod
    def get(self, event_id: str) -> CreditEvent | None:
        """Fetch a single event by id."""

    @abstractmethod
    def find(
        self,
        filters: EventFilter | None = None,
        limit: int | None = None,
        skip: int = 0,
    ) -> list[CreditEvent]:
        """List matching events newest-first."""

    @abstractmethod
    def count(self, filters: EventFilter | None = None) -> int:
        """Count matching events."""

    @abstractmethod
    def exists(self, filters: EventFilter | None = None) -> bool:
        """True if at least one event matches."""

    @abstractmethod
    def distinct_user_count(self, filters: EventFilter | None = None) -> int:
        """Number of distinct ``user_id`` values among matching events."""

    @abstractmethod
    def sum_credits(self, filters: EventFilter | None = None) -> int:
        """Sum of ``credits_awarded`` over matching events."""

    @abstractmethod
    def totals_by_action(self, filters: EventFilter | None = None) -> list[ActionTotal]:
        """Grouped sum per action type, sorted by descending total credits."""

    def ping(self) -> bool:
        """Cheap liveness probe used by the health endpoint."""
        return True

    def is_empty(self) -> bool:
        return not self.exists()

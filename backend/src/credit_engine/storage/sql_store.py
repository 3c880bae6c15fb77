"""SQLAlchemy-backed event store."""

from sqlalchemy import Select, desc, func, select
from sqlalchemy.exc import SQLAlchemyError

from credit_engine.clock import as_naive_utc, utcnow
from credit_engine.errors import StoreError
from credit_engine.ledger.schemas import ActionTotal, CreditEvent, EventFilter, NewCreditEvent
from credit_engine.logging_config import get_logger
from credit_engine.storage.base import EventStore
from credit_engine.storage.db import Database
from credit_engine.storage.models import CreditEventRow

logger = get_logger(__name__)


def _apply_filters(stmt: Select, filters: EventFilter | None) -> Select:
    if filters is None:
        return stmt
    if filters.user_id is not None:
        stmt = stmt.where(CreditEventRow.user_id == filters.user_id)
    if filters.action_type is not None:
        stmt = stmt.where(CreditEventRow.action_type == filters.action_type)
    if filters.referrer_id is not None:
        stmt = stmt.where(CreditEventRow.referrer_id == filters.referrer_id)
    if filters.source_event_id is not None:
        stmt = stmt.where(CreditEventRow.source_event_id == filters.source_event_id)
    if filters.triggered_by is not None:
        stmt = stmt.where(CreditEventRow.triggered_by == filters.triggered_by)
    if filters.has_referrer is True:
        stmt = stmt.where(CreditEventRow.referrer_id.isnot(None))
    elif filters.has_referrer is False:
        stmt = stmt.where(CreditEventRow.referrer_id.is_(None))
    if filters.start_date is not None:
        stmt = stmt.where(CreditEventRow.timestamp >= as_naive_utc(filters.start_date))
    if filters.end_date is not None:
        stmt = stmt.where(CreditEventRow.timestamp <= as_naive_utc(filters.end_date))
    return stmt


def _to_row(event: NewCreditEvent) -> CreditEventRow:
    return CreditEventRow(
        id=event.id,
        user_id=event.user_id,
        action_type=event.action_type,
        credits_awarded=event.credits_awarded,
        referrer_bonus=event.referrer_bonus,
        referrer_id=event.referrer_id,
        source_event_id=event.source_event_id,
        triggered_by=event.triggered_by,
        metadata_json=event.metadata,
        timestamp=as_naive_utc(event.timestamp) if event.timestamp else utcnow(),
    )


class SqlEventStore(EventStore):
    """Event store over a relational database.

    Every call opens its own short transaction; no transaction spans
    two calls.
    """

    name = "sql"

    def __init__(self, database: Database):
        self.db = database

    def append(self, event: NewCreditEvent) -> CreditEvent:
        try:
            with self.db.session() as session:
                row = _to_row(event)
                session.add(row)
                session.flush()
                stored = row.to_event()
        except SQLAlchemyError as exc:
            logger.error("event_append_failed", event_id=event.id, error=str(exc))
            raise StoreError("Failed to append credit event") from exc

        logger.debug("sql_event_appended", event_id=stored.id, user_id=stored.user_id)
        return stored

    def append_many(self, events: list[NewCreditEvent]) -> list[CreditEvent]:
        try:
            with self.db.session() as session:
                rows = [_to_row(event) for event in events]
                session.add_all(rows)
                session.flush()
                return [row.to_event() for row in rows]
        except SQLAlchemyError as exc:
            logger.error("event_bulk_append_failed", count=len(events), error=str(exc))
            raise StoreError("Failed to append credit events") from exc

    def get(self, event_id: str) -> CreditEvent | None:
        try:
            with self.db.session() as session:
                row = session.scalar(select(CreditEventRow).where(CreditEventRow.id == event_id))
                return row.to_event() if row else None
        except SQLAlchemyError as exc:
            raise StoreError("Failed to load credit event") from exc

    def find(
        self,
        filters: EventFilter | None = None,
        limit: int | None = None,
        skip: int = 0,
    ) -> list[CreditEvent]:
        stmt = _apply_filters(select(CreditEventRow), filters).order_by(
            desc(CreditEventRow.timestamp), desc(CreditEventRow.seq)
        )
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            with self.db.session() as session:
                return [row.to_event() for row in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise StoreError("Failed to query credit events") from exc

    def _scalar(self, stmt: Select) -> int:
        try:
            with self.db.session() as session:
                return int(session.scalar(stmt) or 0)
        except SQLAlchemyError as exc:
            raise StoreError("Failed to aggregate credit events") from exc

    def count(self, filters: EventFilter | None = None) -> int:
        return self._scalar(_apply_filters(select(func.count(CreditEventRow.seq)), filters))

    def exists(self, filters: EventFilter | None = None) -> bool:
        stmt = _apply_filters(select(CreditEventRow.seq), filters).limit(1)
        try:
            with self.db.session() as session:
                return session.scalar(stmt) is not None
        except SQLAlchemyError as exc:
            raise StoreError("Failed to query credit events") from exc

    def distinct_user_count(self, filters: EventFilter | None = None) -> int:
        stmt = _apply_filters(select(func.count(func.distinct(CreditEventRow.user_id))), filters)
        return self._scalar(stmt)

    def sum_credits(self, filters: EventFilter | None = None) -> int:
        stmt = _apply_filters(select(func.sum(CreditEventRow.credits_awarded)), filters)
        return self._scalar(stmt)

    def totals_by_action(self, filters: EventFilter | None = None) -> list[ActionTotal]:
        total = func.sum(CreditEventRow.credits_awarded).label("total_credits")
        stmt = (
            _apply_filters(
                select(CreditEventRow.action_type, total, func.count(CreditEventRow.seq)),
                filters,
            )
            .group_by(CreditEventRow.action_type)
            .order_by(desc(total), CreditEventRow.action_type)
        )
        try:
            with self.db.session() as session:
                return [
                    ActionTotal(
                        action_type=action_type,
                        total_credits=int(credits or 0),
                        event_count=int(event_count),
                    )
                    for action_type, credits, event_count in session.execute(stmt)
                ]
        except SQLAlchemyError as exc:
            raise StoreError("Failed to aggregate credit events") from exc

    def ping(self) -> bool:
        try:
            self.db.ping()
        except SQLAlchemyError as exc:
            logger.warning("database_ping_failed", error=str(exc))
            return False
        return True

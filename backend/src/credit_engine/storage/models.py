"""Database models for the credit ledger."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from credit_engine.ledger.schemas import CreditEvent


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class CreditEventRow(Base):
    """One immutable credit event.

    ``seq`` gives a total insertion order used to break timestamp ties;
    ``id`` is the engine-allocated public identifier.
    """

    __tablename__ = "credit_events"
    __table_args__ = (
        CheckConstraint("credits_awarded >= 0", name="ck_credit_events_credits_non_negative"),
        CheckConstraint("referrer_bonus >= 0", name="ck_credit_events_bonus_non_negative"),
        Index("ix_credit_events_user_timestamp", "user_id", "timestamp"),
        Index("ix_credit_events_referrer_timestamp", "referrer_id", "timestamp"),
    )

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    credits_awarded: Mapped[int] = mapped_column(Integer, nullable=False)
    referrer_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    referrer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Causal back-reference of referral_bonus events. Not a foreign key:
    # the bonus is appended before the primary event it points to.
    source_event_id: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    triggered_by: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    metadata_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    def to_event(self) -> CreditEvent:
        return CreditEvent(
            id=self.id,
            user_id=self.user_id,
            action_type=self.action_type,
            credits_awarded=self.credits_awarded,
            referrer_bonus=self.referrer_bonus,
            referrer_id=self.referrer_id,
            timestamp=self.timestamp,
            metadata=dict(self.metadata_json or {}),
            source_event_id=self.source_event_id,
            triggered_by=self.triggered_by,
        )

    def __repr__(self) -> str:
        return (
            f"<CreditEventRow(id='{self.id}', user='{self.user_id}', "
            f"action='{self.action_type}', credits={self.credits_awarded})>"
        )

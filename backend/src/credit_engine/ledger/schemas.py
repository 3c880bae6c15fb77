"""Ledger domain models.

Credit events and every service result are pydantic models. Attribute
names are snake_case in Python; ``model_dump(by_alias=True)`` produces the
camelCase payloads the API serves (``userId``, ``creditsAwarded``...).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Stored action type of bonus payouts. Never accepted as a caller action type.
REFERRAL_BONUS = "referral_bonus"


def new_event_id() -> str:
    """Allocate an event id before the event is appended."""
    return uuid.uuid4().hex


class CamelModel(BaseModel):
    """Base model serialising to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ==================== EVENTS ====================


class NewCreditEvent(CamelModel):
    """An event about to be appended. The store assigns the timestamp."""

    id: str = Field(default_factory=new_event_id)
    user_id: str
    action_type: str
    credits_awarded: int = Field(ge=0)
    referrer_bonus: int = Field(default=0, ge=0)
    referrer_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    source_event_id: str | None = None
    triggered_by: str | None = None
    # Only set by bulk imports that carry their own history
    timestamp: datetime | None = None


class CreditEvent(CamelModel):
    """An immutable, persisted credit event."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    user_id: str
    action_type: str
    credits_awarded: int
    referrer_bonus: int = 0
    referrer_id: str | None = None
    timestamp: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)
    source_event_id: str | None = None
    triggered_by: str | None = None

    @property
    def is_referral_bonus(self) -> bool:
        return self.action_type == REFERRAL_BONUS


class EventFilter(BaseModel):
    """Query filter understood by every event store.

    Unset fields do not constrain the query; date bounds are inclusive.
    """

    user_id: str | None = None
    action_type: str | None = None
    referrer_id: str | None = None
    source_event_id: str | None = None
    triggered_by: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    has_referrer: bool | None = None


class ActionTotal(BaseModel):
    """One row of a grouped sum over action types."""

    action_type: str
    total_credits: int
    event_count: int


# ==================== REFERRALS ====================


class ReferrerStatus(str, Enum):
    ELIGIBLE = "eligible"
    INELIGIBLE = "ineligible"
    UNKNOWN = "unknown"


class ReferralResult(CamelModel):
    success: bool
    bonus_awarded: int = 0
    bonus_event_id: str | None = None
    message: str | None = None
    error: str | None = None


class ReferralBonusSummary(CamelModel):
    user_id: str
    total_bonus_credits: int
    total_referrals: int
    recent_bonuses: list[CreditEvent]


# ==================== LEDGER RESULTS ====================


class RecordResult(CamelModel):
    event: CreditEvent
    referral_processing: ReferralResult | None = None
    message: str


class ActionBreakdown(CamelModel):
    count: int = 0
    total_credits: int = 0


class UserCreditSummary(CamelModel):
    user_id: str
    total_credits: int
    total_events: int
    credits_by_action: dict[str, ActionBreakdown]
    last_activity: datetime | None
    recent_events: list[CreditEvent]


class Pagination(CamelModel):
    total_count: int
    limit: int
    skip: int
    has_more: bool


class EventPage(CamelModel):
    events: list[CreditEvent]
    pagination: Pagination


class ActionStats(CamelModel):
    total_credits: int
    event_count: int


class SystemStats(CamelModel):
    total_credits: int
    total_events: int
    unique_users: int
    recent_activity: int
    # Insertion order is descending total credits
    credits_by_action: dict[str, ActionStats]


class BatchEnrollItem(CamelModel):
    index: int
    success: bool = True
    user_id: str
    credits_awarded: int
    event_id: str
    referral_bonus: int = 0


class BatchEnrollError(CamelModel):
    index: int
    error: str
    enrollment: dict[str, Any] = Field(default_factory=dict)


class BatchEnrollResult(CamelModel):
    processed: int
    failed: int
    results: list[BatchEnrollItem]
    errors: list[BatchEnrollError]


class BulkInsertResult(CamelModel):
    inserted_count: int
    inserted_ids: list[str]


class ReconciliationReport(CamelModel):
    scanned: int
    bonuses_awarded: int
    awarded_event_ids: list[str] = Field(default_factory=list)
    orphan_bonus_ids: list[str] = Field(default_factory=list)

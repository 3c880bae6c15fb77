"""Enrollment API endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from credit_engine.api.deps import get_engine
from credit_engine.engine import CreditEngine
from credit_engine.ledger.schemas import RecordResult
from credit_engine.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/enroll", tags=["enrollment"])


# ==================== MODELS ====================


class EnrollRequest(BaseModel):
    """Enroll a user, optionally crediting a referrer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str | None = None
    referrer_id: str | None = None
    action_type: str = "enrollment"
    # Left loose so the ledger reports negative or fractional amounts itself
    credits_awarded: int | float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class BatchEnrollRequest(BaseModel):
    """Enroll several users in one call."""

    enrollments: list[Any] | None = None


def referral_payload(result: RecordResult, referrer_id: str | None) -> dict[str, Any] | None:
    referral = result.referral_processing
    if referral is None:
        return None
    return {
        "referrerId": referrer_id,
        "bonusAwarded": referral.bonus_awarded,
        "bonusMessage": referral.message or referral.error,
        "bonusEventId": referral.bonus_event_id,
    }


# ==================== ENDPOINTS ====================


@router.post("", status_code=status.HTTP_201_CREATED)
async def enroll_user(body: EnrollRequest, engine: CreditEngine = Depends(get_engine)):
    """Enroll a user and award enrollment credits with optional referral bonus.

    The referrer must already have ledger history; otherwise nothing is
    recorded.
    """
    result = engine.ledger.enroll(
        user_id=body.user_id,
        referrer_id=body.referrer_id,
        action_type=body.action_type,
        credits_awarded=body.credits_awarded,
        metadata=body.metadata,
        source="api",
    )

    response: dict[str, Any] = {
        "success": True,
        "userId": result.event.user_id,
        "creditsAwarded": result.event.credits_awarded,
        "actionType": result.event.action_type,
        "eventId": result.event.id,
        "message": result.message,
    }
    referral = referral_payload(result, body.referrer_id)
    if referral:
        response["referral"] = referral
    return response


@router.post("/batch")
async def enroll_batch(body: BatchEnrollRequest, engine: CreditEngine = Depends(get_engine)):
    """Batch enrollment for multiple users.

    Items are independent: one failing item does not stop the others.
    """
    result = engine.ledger.batch_enroll(body.enrollments, source="batch_api")

    response: dict[str, Any] = {"success": True, **result.to_payload()}
    if not result.errors:
        response.pop("errors")
    return response

"""Credits API endpoints."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from credit_engine.api.deps import get_engine
from credit_engine.api.v1.enroll import referral_payload
from credit_engine.engine import CreditEngine
from credit_engine.errors import LedgerError
from credit_engine.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/credits", tags=["credits"])


# ==================== MODELS ====================


class AwardCreditsRequest(BaseModel):
    """Award credits for an action."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str | None = None
    action_type: str | None = None
    credits_awarded: int | float | None = None
    referrer_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# ==================== ENDPOINTS ====================
# Fixed paths are declared before /{user_id} so they are not captured by it.


@router.post("", status_code=status.HTTP_201_CREATED)
async def award_credits(body: AwardCreditsRequest, engine: CreditEngine = Depends(get_engine)):
    """Award credits for various actions (general endpoint)."""
    result = engine.ledger.record_event(
        user_id=body.user_id,
        action_type=body.action_type,
        credits_awarded=body.credits_awarded,
        referrer_id=body.referrer_id,
        metadata={
            **body.metadata,
            "source": "direct_api",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )

    response: dict[str, Any] = {
        "success": True,
        "userId": result.event.user_id,
        "actionType": result.event.action_type,
        "creditsAwarded": result.event.credits_awarded,
        "eventId": result.event.id,
        "message": result.message,
    }
    referral = referral_payload(result, body.referrer_id)
    if referral:
        response["referral"] = referral
    return response


@router.get("/system/stats")
async def get_system_stats(engine: CreditEngine = Depends(get_engine)):
    """Get system-wide credit statistics."""
    stats = engine.reader.get_system_stats()
    return {
        "success": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **stats.to_payload(),
    }


@router.get("/events")
async def list_credit_events(
    user_id: str | None = Query(None, alias="userId"),
    action_type: str | None = Query(None, alias="actionType"),
    referrer_id: str | None = Query(None, alias="referrerId"),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    limit: int | None = Query(None),
    skip: int = Query(0),
    engine: CreditEngine = Depends(get_engine),
):
    """List credit events across all users with filters and pagination."""
    page = engine.reader.get_credit_events(
        user_id=user_id,
        action_type=action_type,
        referrer_id=referrer_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        skip=skip,
    )
    return {"success": True, **page.to_payload()}


@router.get("/events/{event_id}/bonus")
async def get_event_bonus(event_id: str, engine: CreditEngine = Depends(get_engine)):
    """Get the referral bonus event a primary event triggered."""
    if engine.store.get(event_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    bonus = engine.referrals.find_bonus_for_event(event_id)
    return {
        "success": True,
        "eventId": event_id,
        "bonus": bonus.to_payload() if bonus else None,
    }


@router.get("/{user_id}")
async def get_user_credits(
    user_id: str,
    include_events: bool = Query(False, alias="includeEvents"),
    include_referrals: bool = Query(False, alias="includeReferrals"),
    engine: CreditEngine = Depends(get_engine),
):
    """Get credit totals and summary for a specific user."""
    summary = engine.reader.get_user_credit_total(user_id)
    response: dict[str, Any] = {"success": True, **summary.to_payload()}

    if include_events:
        page = engine.reader.get_credit_events(user_id=user_id, limit=50)
        payload = page.to_payload()
        response["detailedEvents"] = payload["events"]
        response["pagination"] = payload["pagination"]

    if include_referrals:
        try:
            response["referralSummary"] = engine.referrals.get_referral_bonus_summary(user_id).to_payload()
        except LedgerError as exc:
            # Non-critical, the credit summary is still useful without it
            logger.warning("referral_summary_unavailable", user_id=user_id, error=exc.message)

    return response


@router.get("/{user_id}/events")
async def get_user_credit_events(
    user_id: str,
    action_type: str | None = Query(None, alias="actionType"),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    limit: int = Query(20),
    skip: int = Query(0),
    engine: CreditEngine = Depends(get_engine),
):
    """Get paginated credit events for a specific user."""
    page = engine.reader.get_credit_events(
        user_id=user_id,
        action_type=action_type,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        skip=skip,
    )
    return {"success": True, "userId": user_id, **page.to_payload()}


@router.get("/{user_id}/referrals")
async def get_user_referrals(user_id: str, engine: CreditEngine = Depends(get_engine)):
    """Get referral bonus summary for a specific user."""
    summary = engine.referrals.get_referral_bonus_summary(user_id)
    return {"success": True, **summary.to_payload()}

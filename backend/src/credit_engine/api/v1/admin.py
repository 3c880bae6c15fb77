"""Operational endpoints."""

from fastapi import APIRouter, Depends

from credit_engine.api.deps import get_engine
from credit_engine.engine import CreditEngine

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/reconcile")
async def reconcile_referrals(engine: CreditEngine = Depends(get_engine)):
    """Award referral bonuses lost between the two ledger appends.

    Safe to call repeatedly; bonuses already linked to their source event
    are left alone.
    """
    report = engine.reconcile()
    return {"success": True, **report.to_payload()}

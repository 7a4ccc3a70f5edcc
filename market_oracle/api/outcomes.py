"""
Outcomes API
Pending status and expiry processing
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from market_oracle.api.auth import require_cron_secret
from market_oracle.api.responses import ok
from market_oracle.core.services.outcome_tracker import (
    process_expired_picks, force_resolve_pick, get_pending_status, OutcomeError,
)
from market_oracle.database.connection import async_session

router = APIRouter(prefix="/api/outcomes", tags=["outcomes"])


class OutcomeRequest(BaseModel):
    action: Optional[str] = None
    pick_id: Optional[str] = Field(default=None, alias="pickId")

    class Config:
        populate_by_name = True


@router.get("")
async def pending_status():
    async with async_session() as session:
        status = await get_pending_status(session)
    return ok(status)


@router.post("")
async def process_outcomes(body: Optional[OutcomeRequest] = None, _=Depends(require_cron_secret)):
    """
    {"action": "force-resolve", "pick_id": ...} resolves one pick,
    anything else processes every expired pick.
    """
    if body and body.action == "force-resolve" and body.pick_id:
        try:
            pick_id = uuid.UUID(body.pick_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid pick id")

        async with async_session() as session:
            try:
                outcome = await force_resolve_pick(session, pick_id)
            except OutcomeError as e:
                raise HTTPException(status_code=e.status_code, detail=str(e))
        return ok(outcome=outcome)

    async with async_session() as session:
        results = await process_expired_picks(session)
    return ok(results=results)

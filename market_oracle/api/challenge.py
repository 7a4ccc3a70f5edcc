"""
Challenge API
90-day paper-trading challenge for users
"""
import uuid
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from market_oracle.api.auth import require_user_id, optional_user_id
from market_oracle.api.responses import ok
from market_oracle.core.services.challenge_service import (
    enroll, record_trade, check_milestones, complete_challenge,
    get_status, get_challenge_leaderboard, get_milestones, get_history,
    serialize_enrollment, STARTING_BALANCE, ChallengeError,
)
from market_oracle.database.connection import async_session

router = APIRouter(prefix="/api/challenge", tags=["challenge"])


class ChallengeRef(BaseModel):
    challenge_id: Optional[uuid.UUID] = None


class TradeRequest(ChallengeRef):
    ticker: str = Field(..., min_length=1, max_length=16)
    action: str
    shares: Decimal = Field(..., gt=0)
    price: Decimal = Field(..., gt=0)
    ai_model_id: Optional[uuid.UUID] = None


def _raise(e: ChallengeError):
    raise HTTPException(status_code=e.status_code, detail=str(e))


# === Reads ===

@router.get("/status")
async def status(user_id: Optional[str] = Depends(optional_user_id)):
    async with async_session() as session:
        data = await get_status(session, user_id)
    return ok(data)


@router.get("/leaderboard")
async def leaderboard(challenge_id: Optional[uuid.UUID] = None, limit: int = 100):
    async with async_session() as session:
        data = await get_challenge_leaderboard(session, challenge_id, limit=limit)
    return ok(data)


@router.get("/milestones")
async def milestones(user_id: Optional[str] = Depends(optional_user_id)):
    async with async_session() as session:
        data = await get_milestones(session, user_id)
    return ok(data)


@router.get("/history")
async def history(user_id: Optional[str] = Depends(optional_user_id)):
    async with async_session() as session:
        rows = await get_history(session, user_id)
    return ok(history=rows)


# === Mutations ===

@router.post("/enroll")
async def enroll_endpoint(user_id: str = Depends(require_user_id)):
    async with async_session() as session:
        try:
            enrollment = await enroll(session, user_id)
        except ChallengeError as e:
            _raise(e)
    return ok(
        enrollment=serialize_enrollment(enrollment),
        message=f"Welcome to the 90-Day Challenge! Starting balance: ${STARTING_BALANCE:,.0f}",
    )


@router.post("/trade")
async def trade_endpoint(trade: TradeRequest, user_id: str = Depends(require_user_id)):
    async with async_session() as session:
        try:
            result = await record_trade(
                session,
                user_id,
                ticker=trade.ticker,
                action=trade.action,
                shares=trade.shares,
                price=trade.price,
                challenge_id=trade.challenge_id,
                ai_model_id=trade.ai_model_id,
            )
        except ChallengeError as e:
            _raise(e)
    return ok(result)


@router.post("/check-milestones")
async def check_milestones_endpoint(
    body: Optional[ChallengeRef] = None,
    user_id: str = Depends(require_user_id),
):
    async with async_session() as session:
        try:
            result = await check_milestones(session, user_id, body.challenge_id if body else None)
        except ChallengeError as e:
            _raise(e)
    return ok(result)


@router.post("/complete")
async def complete_endpoint(
    body: Optional[ChallengeRef] = None,
    user_id: str = Depends(require_user_id),
):
    async with async_session() as session:
        try:
            result = await complete_challenge(session, user_id, body.challenge_id if body else None)
        except ChallengeError as e:
            _raise(e)
    return ok(result)

"""
Leaderboard API
Model rankings and stats recompute
"""
from fastapi import APIRouter, Depends, HTTPException

from market_oracle.api.auth import require_admin
from market_oracle.api.responses import ok
from market_oracle.core.config import PICK_CATEGORIES
from market_oracle.core.services.leaderboard_service import get_leaderboard, TIMEFRAMES
from market_oracle.core.services.stats_service import recompute_all_models
from market_oracle.database.connection import async_session

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])


@router.get("")
async def leaderboard(timeframe: str = "all", category: str = "all", limit: int = 10):
    """
    Active models ranked by win rate

    - timeframe: all | week | month
    - category: all | regular | penny | crypto
    """
    if timeframe not in TIMEFRAMES:
        raise HTTPException(status_code=400, detail="Invalid timeframe")
    if category != "all" and category not in PICK_CATEGORIES:
        raise HTTPException(status_code=400, detail="Invalid category")

    async with async_session() as session:
        data = await get_leaderboard(session, timeframe=timeframe, category=category, limit=limit)
    return ok(data)


@router.post("/recompute")
async def recompute(_=Depends(require_admin)):
    """Rebuild every model's counters from resolved picks"""
    async with async_session() as session:
        updated = await recompute_all_models(session)
    return ok(message=f"Updated stats for {len(updated)} models", models=updated)

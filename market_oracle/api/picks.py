"""
Pick Cycle API
Manual (GET ?trigger=) and cron (POST + bearer) entry points for generation and price refresh
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request

from market_oracle.api.auth import require_cron_secret
from market_oracle.api.rate_limit import limiter
from market_oracle.api.responses import ok
from market_oracle.core.services.pick_generator import generate_picks
from market_oracle.core.services.price_updater import update_active_prices
from market_oracle.database.connection import async_session

router = APIRouter(prefix="/api/market-oracle", tags=["picks"])

TRIGGERS = ("manual", "cron")


async def _run_generation() -> dict:
    async with async_session() as session:
        result = await generate_picks(session)
    return ok(result)


async def _run_price_update() -> dict:
    async with async_session() as session:
        summary = await update_active_prices(session)

    if summary["total_picks"] == 0:
        return ok(message="No active picks to update", summary=summary)
    return ok(summary=summary)


@router.get("/generate-picks")
@limiter.limit("5/hour")
async def generate_picks_manual(request: Request, trigger: Optional[str] = None):
    """
    Run the weekly pick cycle now.
    Without ?trigger=manual|cron only usage is returned.
    """
    if trigger not in TRIGGERS:
        return {"message": "Market Oracle - Real Prices", "usage": "?trigger=manual"}
    return await _run_generation()


@router.post("/generate-picks")
async def generate_picks_cron(_=Depends(require_cron_secret)):
    return await _run_generation()


@router.get("/update-prices")
@limiter.limit("30/hour")
async def update_prices_manual(request: Request, trigger: Optional[str] = None):
    if trigger not in TRIGGERS:
        return {
            "message": "Market Oracle Price Update API",
            "usage": "Add ?trigger=manual to update prices",
            "schedule": "Auto-runs every 15 minutes on weekdays",
        }
    return await _run_price_update()


@router.post("/update-prices")
async def update_prices_cron(_=Depends(require_cron_secret)):
    return await _run_price_update()

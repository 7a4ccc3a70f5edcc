"""
Calibration API
Latest per-model calibration snapshots and the weekly run
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse

from market_oracle.api.auth import require_cron_secret
from market_oracle.api.responses import ok
from market_oracle.core.services.calibration_service import (
    get_latest_calibrations, run_weekly_calibration, calibration_report,
)
from market_oracle.database.connection import async_session

router = APIRouter(prefix="/api/calibration", tags=["calibration"])


@router.get("")
async def latest_calibrations(ai: Optional[str] = None, format: str = "json"):
    """
    Latest calibration per model

    - ai: one model name
    - format: json | report (markdown)
    """
    async with async_session() as session:
        calibrations = await get_latest_calibrations(session, model_name=ai)

    if format == "report":
        return PlainTextResponse(calibration_report(calibrations), media_type="text/markdown")

    if ai:
        calibration = next(iter(calibrations.values()), None)
        if not calibration:
            raise HTTPException(status_code=404, detail=f"No calibration data for {ai}")
        return ok(calibration=calibration)

    return ok(calibrations=calibrations)


@router.post("")
async def run_calibration(_=Depends(require_cron_secret)):
    async with async_session() as session:
        result = await run_weekly_calibration(session)
    return ok(result)

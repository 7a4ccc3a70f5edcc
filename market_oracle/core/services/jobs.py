"""
Jobs
Scheduled pick-cycle jobs, shared by the API scheduler and the standalone runners
"""

import logging

from market_oracle.core.services.alerts import alert_admin, alert_job_failure, pick_cycle_report
from market_oracle.core.services.calibration_service import run_weekly_calibration
from market_oracle.core.services.outcome_tracker import process_expired_picks
from market_oracle.core.services.pick_generator import generate_picks
from market_oracle.core.services.price_updater import update_active_prices
from market_oracle.core.services.stats_service import recompute_all_models
from market_oracle.database.connection import async_session

logger = logging.getLogger(__name__)


async def weekly_pick_generation():
    try:
        async with async_session() as session:
            result = await generate_picks(session)
        logger.info("Pick generation done: %s", result)

        report = pick_cycle_report(result)
        if report:
            await alert_admin(report)
        return result
    except Exception as e:
        logger.exception("Pick generation failed")
        await alert_job_failure("Pick generation", e)


async def daily_outcome_processing():
    try:
        async with async_session() as session:
            result = await process_expired_picks(session)
        logger.info("Outcome processing done: %s", result)
        return result
    except Exception as e:
        logger.exception("Outcome processing failed")
        await alert_job_failure("Outcome processing", e)


async def price_refresh():
    try:
        async with async_session() as session:
            return await update_active_prices(session)
    except Exception as e:
        logger.exception("Price refresh failed")
        await alert_job_failure("Price refresh", e)


async def weekly_leaderboard_recompute():
    try:
        async with async_session() as session:
            updated = await recompute_all_models(session)
        return updated
    except Exception as e:
        logger.exception("Leaderboard recompute failed")
        await alert_job_failure("Leaderboard recompute", e)


async def weekly_model_calibration():
    try:
        async with async_session() as session:
            result = await run_weekly_calibration(session)
        logger.info(
            "Calibration done: %d calibrated, %d skipped",
            len(result["calibrated"]), len(result["skipped"]),
        )
        return result
    except Exception as e:
        logger.exception("Calibration failed")
        await alert_job_failure("Calibration", e)

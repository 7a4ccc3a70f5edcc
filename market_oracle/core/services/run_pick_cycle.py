"""
Pick Cycle Entrypoint
Run one pick-cycle job once (for external cron / local)

    python -m market_oracle.core.services.run_pick_cycle generate
    PICK_CYCLE_JOB=outcomes python -m market_oracle.core.services.run_pick_cycle
    python -m market_oracle.core.services.run_pick_cycle init-db
"""

import asyncio
import logging
import os
import sys

from market_oracle.core.services.jobs import (
    weekly_pick_generation, daily_outcome_processing, price_refresh, weekly_leaderboard_recompute,
    weekly_model_calibration,
)
from market_oracle.database.connection import init_db, close_db

JOBS = {
    "generate": weekly_pick_generation,
    "outcomes": daily_outcome_processing,
    "prices": price_refresh,
    "recompute": weekly_leaderboard_recompute,
    "calibrate": weekly_model_calibration,
}


def _get_job_name(argv: list[str]) -> str:
    if len(argv) > 1:
        return argv[1].strip().lower()
    return os.getenv("PICK_CYCLE_JOB", "generate").strip().lower()


async def main(argv: list[str]) -> int:
    name = _get_job_name(argv)

    if name == "init-db":
        await init_db()
        await close_db()
        return 0

    job = JOBS.get(name)
    if not job:
        logging.error("Unknown job %r, expected one of: %s, init-db", name, ", ".join(JOBS))
        return 2

    try:
        result = await job()
    finally:
        await close_db()

    logging.info("%s finished: %s", name, result)
    return 0 if result is not None else 1


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(main(sys.argv)))

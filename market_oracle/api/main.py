"""
FastAPI Backend
Market Oracle API: pick cycle, leaderboard, calibration, challenge, credits and market data
"""

import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from market_oracle.core.config import get_settings
from market_oracle.core.services.jobs import (
    weekly_pick_generation, daily_outcome_processing, price_refresh, weekly_leaderboard_recompute,
    weekly_model_calibration,
)
from market_oracle.database.connection import close_db
from market_oracle.api.rate_limit import limiter
from market_oracle.api.picks import router as picks_router
from market_oracle.api.outcomes import router as outcomes_router
from market_oracle.api.leaderboard import router as leaderboard_router
from market_oracle.api.challenge import router as challenge_router
from market_oracle.api.credits import router as credits_router
from market_oracle.api.market import router as market_router
from market_oracle.api.simulator import router as simulator_router
from market_oracle.api.calibration import router as calibration_router

settings = get_settings()

logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Market Oracle API", version="1.0.0")

# Rate Limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request, exc):
    return JSONResponse(
        {"error": "Rate limit exceeded. Please try again later."},
        status_code=429
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": "Invalid request", "details": jsonable_encoder(exc.errors())}, status_code=422)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse({"error": str(exc)}, status_code=500)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(picks_router)
app.include_router(outcomes_router)
app.include_router(leaderboard_router)
app.include_router(challenge_router)
app.include_router(credits_router)
app.include_router(market_router)
app.include_router(simulator_router)
app.include_router(calibration_router)

# Scheduler for background jobs
scheduler = AsyncIOScheduler(timezone="UTC")


@app.on_event("startup")
async def startup_jobs():
    """Start background jobs"""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled")
        return

    # Monday 13:00 UTC
    scheduler.add_job(weekly_pick_generation, "cron", day_of_week="mon", hour=13, minute=0)
    # Daily 21:30 UTC, after the US close
    scheduler.add_job(daily_outcome_processing, "cron", hour=21, minute=30)
    scheduler.add_job(price_refresh, "cron", day_of_week="mon-fri", minute="*/15")
    scheduler.add_job(weekly_leaderboard_recompute, "cron", day_of_week="sun", hour=0, minute=0)
    # after the recompute, on the settled week
    scheduler.add_job(weekly_model_calibration, "cron", day_of_week="sun", hour=1, minute=0)
    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))


@app.on_event("shutdown")
async def shutdown_jobs():
    if scheduler.running:
        scheduler.shutdown(wait=False)
    await close_db()


@app.get("/")
async def root():
    return {"status": "ok", "message": "Market Oracle API"}


@app.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

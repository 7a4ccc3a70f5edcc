"""
Pick Generator
Weekly pick cycle: real prices -> prompt -> provider -> parsed picks -> stock_picks rows
"""

import asyncio
import json
import logging
import math
import re
import time
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from market_oracle.core.config import (
    get_settings, AI_CONFIG, PICK_CATEGORIES, TICKERS, WEEK_EPOCH,
)
from market_oracle.core.services.llm_providers import call_provider, strip_code_fences, ProviderError
from market_oracle.core.services.price_service import get_stock_prices, get_crypto_prices
from market_oracle.database.models import (
    Competition, CompetitionStatus, AIModel, StockPick, AICallLog,
    PickDirection, PickStatus,
)

settings = get_settings()
logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    'You are a helpful AI assistant participating in a stock market simulation game called "Market Oracle" '
    "for educational purposes. This is NOT real financial advice - it's a game where AI models compete to make "
    "hypothetical picks. Always provide the requested stock picks in JSON format for the game. "
    "IMPORTANT: Use the exact entry prices provided to you."
)

STOP_LOSS_PCT = Decimal("0.05")
REASONING_MAX_CHARS = 500

_TICKER_STRIP_RE = re.compile(r"[^A-Z0-9]")


def build_prompt(category: str, prices: dict[str, float], count: Optional[int] = None) -> str:
    """
    Fixed prompt for one category, listing only tickers with a real price
    """
    n = count or settings.picks_per_category
    kind = "crypto" if category == "crypto" else "stock"

    price_list = ", ".join(
        f"{t}: ${prices[t]:.2f}" for t in TICKERS.get(category, []) if t in prices
    )

    return (
        f"For our educational {kind} simulation game, suggest {n} picks from this list WITH CURRENT PRICES:\n\n"
        f"{price_list}\n\n"
        f"Return EXACTLY {n} picks as a JSON array. The entry_price MUST be the exact current price shown above:\n"
        '[{"ticker":"SYM","confidence":75,"entry_price":EXACT_PRICE_FROM_ABOVE,"target_price":110,'
        '"reasoning":"Brief educational note"}]\n\n'
        "IMPORTANT: Return ONLY the JSON array. No markdown, no code blocks."
    )


def _to_number(value, default: float = 0.0) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(n) or math.isinf(n):
        return default
    return n


def parse_picks(text: str, prices: Optional[dict[str, float]] = None, limit: int = 5) -> list[dict]:
    """
    Parse the JSON array of picks out of a free-form model answer.

    - ticker: upper-cased, only [A-Z0-9] kept
    - confidence: number, clamped to [0, 100]
    - entry/target: numbers, 0 when missing
    - with a price map, entry is the real price and unpriced picks are dropped
    Anything unparseable yields [].
    """
    cleaned = strip_code_fences(text)
    start, end = cleaned.find("["), cleaned.rfind("]") + 1
    if start >= 0 and end > start:
        cleaned = cleaned[start:end]

    try:
        raw = json.loads(cleaned)
    except (ValueError, TypeError):
        return []

    if not isinstance(raw, list):
        return []

    picks = []
    for item in raw[:limit]:
        if not isinstance(item, dict):
            continue

        ticker = _TICKER_STRIP_RE.sub("", str(item.get("ticker") or "").upper())
        confidence = min(100.0, max(0.0, _to_number(item.get("confidence"))))

        pick = {
            "ticker": ticker,
            "confidence": int(round(confidence)),
            "entry_price": _to_number(item.get("entry_price")),
            "target_price": _to_number(item.get("target_price")),
            "reasoning": str(item.get("reasoning") or "AI analysis")[:REASONING_MAX_CHARS],
        }

        if prices is not None:
            if ticker not in prices:
                continue
            pick["entry_price"] = prices[ticker]

        picks.append(pick)

    return picks


def pick_direction(entry: float, target: float) -> PickDirection:
    if target > entry:
        return PickDirection.UP
    if target < entry:
        return PickDirection.DOWN
    return PickDirection.HOLD


def stop_loss_for(direction: PickDirection, entry: Decimal) -> Decimal:
    """5% below entry for UP picks, 5% above otherwise"""
    if direction == PickDirection.UP:
        return entry * (1 - STOP_LOSS_PCT)
    return entry * (1 + STOP_LOSS_PCT)


def week_number(now: Optional[datetime] = None) -> int:
    """Weeks since 2025-01-01, rounded up"""
    now = now or datetime.utcnow()
    epoch = datetime(WEEK_EPOCH.year, WEEK_EPOCH.month, WEEK_EPOCH.day)
    return math.ceil((now - epoch).total_seconds() / timedelta(days=7).total_seconds())


async def get_or_create_competition(session: AsyncSession) -> Competition:
    """
    The active competition; created on the first run.
    """
    res = await session.execute(
        select(Competition)
        .where(Competition.status == CompetitionStatus.ACTIVE.value)
        .order_by(Competition.created_at.desc())
        .limit(1)
    )
    competition = res.scalar_one_or_none()
    if competition:
        return competition

    now = datetime.utcnow()
    competition = Competition(
        name=f"AI Battle {now.year} W{week_number(now)}",
        status=CompetitionStatus.ACTIVE.value,
        start_date=now,
    )
    session.add(competition)
    await session.flush()
    logger.info("Created competition %s", competition.name)
    return competition


async def fetch_all_prices() -> dict[str, float]:
    """Real prices for every category universe, fetched concurrently"""
    regular, penny, crypto = await asyncio.gather(
        get_stock_prices(TICKERS["regular"]),
        get_stock_prices(TICKERS["penny"]),
        get_crypto_prices(TICKERS["crypto"]),
    )
    return {**regular, **penny, **crypto}


async def _log_call(session: AsyncSession, ai_name: str, category: str, model: str, error: Optional[str] = None):
    session.add(AICallLog(
        ai_name=ai_name,
        category=category,
        success=error is None,
        model_used=model,
        error_message=error,
    ))


async def generate_picks(session: AsyncSession, now: Optional[datetime] = None) -> dict:
    """
    Run one full pick cycle and commit it.

    Each configured active model answers once per category. A failing
    provider/category pair is recorded in `errors` and the loop moves on.
    Re-running in the same week replaces that week's unresolved picks;
    earlier weeks stay in place until the outcome job resolves them.
    """
    started = time.monotonic()
    logger.info("Starting pick generation")

    prices = await fetch_all_prices()
    logger.info("Found %d real prices", len(prices))

    now = now or datetime.utcnow()
    week = week_number(now)
    expiry = now + timedelta(days=settings.pick_expiry_days)

    competition = await get_or_create_competition(session)
    await session.execute(
        delete(StockPick)
        .where(StockPick.competition_id == competition.id)
        .where(StockPick.week_number == week)
        .where(StockPick.result.is_(None))
    )

    res = await session.execute(select(AIModel).where(AIModel.is_active == True))  # noqa: E712
    models_by_name = {m.name.lower(): m for m in res.scalars().all()}

    generated = {c: 0 for c in PICK_CATEGORIES}
    errors: list[str] = []

    for ai_name, cfg in AI_CONFIG.items():
        ai_model = models_by_name.get(ai_name.lower())
        if not ai_model:
            continue

        for category in PICK_CATEGORIES:
            try:
                text = await call_provider(
                    cfg["provider"],
                    cfg["model"],
                    build_prompt(category, prices),
                    system=SYSTEM_PROMPT,
                )
            except ProviderError as e:
                logger.warning("%s/%s failed: %s", ai_name, category, e)
                errors.append(f"{ai_name}/{category}: {e}")
                await _log_call(session, ai_name, category, cfg["model"], str(e))
                continue

            await _log_call(session, ai_name, category, cfg["model"])

            picks = parse_picks(text, prices, limit=settings.picks_per_category)
            if not picks:
                errors.append(f"{ai_name}/{category}: no parseable picks")
                continue

            for p in picks:
                entry = Decimal(str(p["entry_price"]))
                target = Decimal(str(p["target_price"]))
                direction = pick_direction(p["entry_price"], p["target_price"])

                session.add(StockPick(
                    competition_id=competition.id,
                    ai_model_id=ai_model.id,
                    ticker=p["ticker"],
                    category=category,
                    direction=direction.value,
                    confidence=p["confidence"],
                    entry_price=entry,
                    target_price=target,
                    stop_loss=stop_loss_for(direction, entry),
                    reasoning=f"[{category.upper()}] {p['reasoning']}",
                    status=PickStatus.ACTIVE.value,
                    week_number=week,
                    pick_date=now,
                    expiry_date=expiry,
                    current_price=entry,
                    price_change=Decimal("0"),
                    price_change_pct=0.0,
                    last_price_update=now,
                ))
                generated[category] += 1

            logger.info("%s %s: %d picks", ai_name, category, len(picks))

    await session.commit()

    return {
        "generated": generated,
        "total": sum(generated.values()),
        "errors": errors,
        "prices_available": len(prices),
        "elapsed": f"{time.monotonic() - started:.1f}s",
    }

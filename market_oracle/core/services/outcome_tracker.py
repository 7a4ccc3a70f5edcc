"""
Outcome Tracker
Resolve expired picks against a current quote and fold results into model stats
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from market_oracle.core.services.price_service import get_current_price
from market_oracle.core.services.stats_service import apply_pick_result
from market_oracle.database.models import (
    AIModel, StockPick, PickDirection, PickResult, PickStatus,
)

logger = logging.getLogger(__name__)

# HOLD picks win when the price stayed within this band
HOLD_BAND_PCT = 3.0


class OutcomeError(Exception):
    """Pick cannot be resolved"""
    status_code = 400


class PickNotFound(OutcomeError):
    status_code = 404


class PriceUnavailable(OutcomeError):
    status_code = 503


def determine_outcome(direction: str, entry: float, target: float, current: float) -> tuple[PickResult, float]:
    """
    Win/loss and the directional profit/loss percent for one pick.

    UP wins at or above target, DOWN wins at or below target,
    HOLD wins when the move stayed within 3%.
    """
    entry, target, current = float(entry), float(target), float(current)
    move_pct = (current - entry) / entry * 100 if entry else 0.0

    if direction == PickDirection.UP.value:
        won = current >= target
        pnl = move_pct
    elif direction == PickDirection.DOWN.value:
        won = current <= target
        pnl = -move_pct
    else:
        won = abs(move_pct) <= HOLD_BAND_PCT
        pnl = -abs(move_pct)

    return (PickResult.WIN if won else PickResult.LOSS), round(pnl, 4)


async def _resolve(session: AsyncSession, pick: StockPick, price: float, now: datetime) -> PickResult:
    if pick.result is not None:
        raise OutcomeError("Pick already resolved")

    result, pnl = determine_outcome(pick.direction, pick.entry_price, pick.target_price, price)

    pick.status = PickStatus.EXPIRED.value
    pick.result = result.value
    pick.profit_loss_percent = pnl
    pick.closed_price = Decimal(str(price))
    pick.resolved_at = now

    model = await session.get(AIModel, pick.ai_model_id)
    if model:
        apply_pick_result(model, result.value, pnl)

    return result


async def process_expired_picks(session: AsyncSession, now: Optional[datetime] = None) -> dict:
    """
    Resolve every active pick past its expiry, then commit.

    One quote per (ticker, category): crypto and stocks are quoted from
    different sources, so a symbol listed in both is fetched once per source.
    A ticker without a quote is reported once in `errors` and its picks stay
    active for the next run.
    """
    now = now or datetime.utcnow()
    results = {"processed": 0, "wins": 0, "losses": 0, "errors": []}

    res = await session.execute(
        select(StockPick)
        .where(StockPick.status == PickStatus.ACTIVE.value)
        .where(StockPick.result.is_(None))
        .where(StockPick.expiry_date < now)
    )
    expired = res.scalars().all()
    if not expired:
        return results

    groups: dict[tuple[str, str], list[StockPick]] = defaultdict(list)
    for pick in expired:
        groups[(pick.ticker, pick.category)].append(pick)

    for (ticker, category), picks in groups.items():
        price = await get_current_price(ticker, category)
        if not price:
            results["errors"].append(f"Could not fetch price for {ticker} ({category})")
            continue

        for pick in picks:
            result = await _resolve(session, pick, price, now)
            results["processed"] += 1
            if result == PickResult.WIN:
                results["wins"] += 1
            else:
                results["losses"] += 1

    await session.commit()
    logger.info(
        "Outcomes: %d processed, %d wins, %d losses, %d errors",
        results["processed"], results["wins"], results["losses"], len(results["errors"]),
    )
    return results


async def force_resolve_pick(session: AsyncSession, pick_id: uuid.UUID) -> dict:
    """
    Resolve one pick now, regardless of its expiry.
    """
    pick = await session.get(StockPick, pick_id)
    if not pick:
        raise PickNotFound("Pick not found")
    if pick.result is not None:
        raise OutcomeError("Pick already resolved")

    price = await get_current_price(pick.ticker, pick.category)
    if not price:
        raise PriceUnavailable(f"Could not fetch price for {pick.ticker}")

    result = await _resolve(session, pick, price, datetime.utcnow())
    await session.commit()

    return {
        "pick_id": str(pick.id),
        "ticker": pick.ticker,
        "result": result.value,
        "closed_price": price,
        "profit_loss_percent": pick.profit_loss_percent,
    }


async def get_pending_status(session: AsyncSession) -> dict:
    """Unresolved picks: count, soonest expiry, tickers"""
    res = await session.execute(
        select(StockPick.ticker, StockPick.expiry_date)
        .where(StockPick.status == PickStatus.ACTIVE.value)
        .where(StockPick.result.is_(None))
        .order_by(StockPick.expiry_date.asc())
    )
    rows = res.all()

    return {
        "pending_count": len(rows),
        "next_expiration": rows[0].expiry_date.isoformat() if rows else None,
        "symbols": sorted({r.ticker for r in rows}),
    }

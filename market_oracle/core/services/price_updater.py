"""
Price Updater
Refresh live price fields on active picks
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from market_oracle.core.services.price_service import get_stock_prices, get_crypto_prices
from market_oracle.database.models import StockPick, PickStatus, PickCategory

logger = logging.getLogger(__name__)


def price_change_fields(entry: Decimal, current: float) -> dict:
    """current_price / price_change / price_change_pct for one pick"""
    cur = Decimal(str(current))
    change = cur - entry
    pct = float(change / entry * 100) if entry else 0.0
    return {
        "current_price": cur,
        "price_change": change,
        "price_change_pct": round(pct, 4),
    }


async def update_active_prices(session: AsyncSession) -> dict:
    """
    Fetch prices for every active pick's ticker and store them.
    Picks whose ticker has no price are counted as failed and left as they were.
    """
    res = await session.execute(
        select(StockPick).where(StockPick.status == PickStatus.ACTIVE.value)
    )
    picks = res.scalars().all()

    if not picks:
        return {"total_picks": 0, "prices_found": 0, "updated": 0, "failed": 0, "stocks": 0, "crypto": 0}

    stock_tickers = sorted({p.ticker for p in picks if p.category != PickCategory.CRYPTO.value})
    crypto_tickers = sorted({p.ticker for p in picks if p.category == PickCategory.CRYPTO.value})

    logger.info("Fetching prices for %d stocks and %d crypto", len(stock_tickers), len(crypto_tickers))

    stock_prices, crypto_prices = await asyncio.gather(
        get_stock_prices(stock_tickers),
        get_crypto_prices(crypto_tickers),
    )
    all_prices = {**stock_prices, **crypto_prices}

    now = datetime.utcnow()
    updated = failed = 0

    for pick in picks:
        price = all_prices.get(pick.ticker.upper())
        if not price or price <= 0:
            logger.info("No price found for %s", pick.ticker)
            failed += 1
            continue

        for field, value in price_change_fields(Decimal(pick.entry_price), price).items():
            setattr(pick, field, value)
        pick.last_price_update = now
        updated += 1

    await session.commit()

    return {
        "total_picks": len(picks),
        "prices_found": len(all_prices),
        "updated": updated,
        "failed": failed,
        "stocks": len(stock_tickers),
        "crypto": len(crypto_tickers),
    }

"""
Market Data API
Economic indicators, stock intelligence and insider activity
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from market_oracle.api.auth import require_feature
from market_oracle.api.responses import ok
from market_oracle.core.services.economic_service import get_economic_data
from market_oracle.core.services.insider_service import get_insider_activity
from market_oracle.core.services.market_data import get_stock_intelligence

router = APIRouter(prefix="/api", tags=["market"])


@router.get("/economic")
async def economic(category: Optional[str] = None, id: Optional[str] = None):
    """FRED indicators, optionally filtered by ?category= or ?id="""
    data = await get_economic_data(category=category, indicator_id=id)
    return ok(data)


@router.get("/stock/{symbol}/intelligence")
async def stock_intelligence(symbol: str):
    data = await get_stock_intelligence(symbol)
    if not data:
        raise HTTPException(status_code=404, detail=f"No data found for symbol: {symbol.upper()}")
    return ok(data)


@router.get("/insider/{symbol}")
async def insider(
    symbol: str,
    type: str = "all",
    significance: Optional[str] = None,
    limit: int = 50,
    _user_id: str = Depends(require_feature("insider_trades")),
):
    """
    Insider transactions for one symbol

    - type: all | buy | sell | exercise | gift
    - significance: high | medium | low
    """
    if type not in ("all", "buy", "sell", "exercise", "gift"):
        raise HTTPException(status_code=400, detail="Invalid type")
    if significance and significance not in ("high", "medium", "low"):
        raise HTTPException(status_code=400, detail="Invalid significance")

    data = await get_insider_activity(symbol, tx_type=type, significance=significance, limit=min(limit, 200))
    return ok(data)

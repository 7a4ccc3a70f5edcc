"""
Leaderboard Service
Model rankings with recent and best picks
"""
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from market_oracle.database.models import AIModel, StockPick, PickResult

TIMEFRAMES = {"all": None, "week": timedelta(days=7), "month": timedelta(days=30)}
RECENT_PICKS = 5


def _num(value) -> Optional[float]:
    return float(value) if value is not None else None


def serialize_pick(pick: StockPick) -> dict:
    return {
        "id": str(pick.id),
        "ticker": pick.ticker,
        "category": pick.category,
        "direction": pick.direction,
        "confidence": pick.confidence,
        "entry_price": _num(pick.entry_price),
        "target_price": _num(pick.target_price),
        "current_price": _num(pick.current_price),
        "price_change_pct": pick.price_change_pct,
        "status": pick.status,
        "result": pick.result,
        "profit_loss_percent": pick.profit_loss_percent,
        "week_number": pick.week_number,
        "pick_date": pick.pick_date.isoformat() if pick.pick_date else None,
        "expiry_date": pick.expiry_date.isoformat() if pick.expiry_date else None,
    }


def serialize_model(model: AIModel, rank: int) -> dict:
    return {
        "rank": rank,
        "id": str(model.id),
        "name": model.name,
        "display_name": model.display_name or model.name,
        "provider": model.provider,
        "total_picks": model.total_picks,
        "total_wins": model.total_wins,
        "total_losses": model.total_losses,
        "win_rate": _num(model.win_rate),
        "total_profit_loss": _num(model.total_profit_loss),
        "current_streak": model.current_streak,
        "best_win_streak": model.best_win_streak,
        "worst_loss_streak": model.worst_loss_streak,
    }


async def get_leaderboard(
    session: AsyncSession,
    timeframe: str = "all",
    category: str = "all",
    limit: int = 10,
) -> dict:
    """
    Active models by win rate, each with its 5 most recent picks
    (category/timeframe filtered) and its best winning pick.
    """
    limit = min(max(limit, 1), 50)
    window = TIMEFRAMES.get(timeframe)

    res = await session.execute(
        select(AIModel)
        .where(AIModel.is_active == True)  # noqa: E712
        .order_by(desc(AIModel.win_rate))
    )
    models = res.scalars().all()

    leaderboard = []
    for i, model in enumerate(models[:limit]):
        recent_q = (
            select(StockPick)
            .where(StockPick.ai_model_id == model.id)
            .order_by(desc(StockPick.created_at))
            .limit(RECENT_PICKS)
        )
        if category != "all":
            recent_q = recent_q.where(StockPick.category == category)
        if window:
            recent_q = recent_q.where(StockPick.created_at >= datetime.utcnow() - window)

        recent = (await session.execute(recent_q)).scalars().all()

        best = (await session.execute(
            select(StockPick)
            .where(StockPick.ai_model_id == model.id)
            .where(StockPick.result == PickResult.WIN.value)
            .order_by(desc(StockPick.profit_loss_percent))
            .limit(1)
        )).scalar_one_or_none()

        entry = serialize_model(model, rank=i + 1)
        entry["recent_picks"] = [serialize_pick(p) for p in recent]
        entry["best_pick"] = serialize_pick(best) if best else None
        leaderboard.append(entry)

    total_picks = (await session.execute(select(func.count(StockPick.id)))).scalar() or 0
    winning_picks = (await session.execute(
        select(func.count(StockPick.id)).where(StockPick.result == PickResult.WIN.value)
    )).scalar() or 0

    return {
        "leaderboard": leaderboard,
        "stats": {
            "total_models": len(models),
            "total_picks": total_picks,
            "overall_win_rate": round(winning_picks / total_picks * 100, 1) if total_picks > 0 else 0,
            "timeframe": timeframe,
            "category": category,
        },
    }

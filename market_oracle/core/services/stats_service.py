"""
Stats Service
Model win/loss counters for the leaderboard
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from market_oracle.database.models import AIModel, StockPick, PickResult

logger = logging.getLogger(__name__)


@dataclass
class ModelStats:
    wins: int = 0
    losses: int = 0
    total_profit_loss: float = 0.0
    current_streak: int = 0
    best_win_streak: int = 0
    worst_loss_streak: int = 0

    @property
    def total(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> Optional[float]:
        if self.total == 0:
            return None
        return self.wins / self.total * 100


def win_rate_for(wins: int, losses: int) -> Optional[Decimal]:
    total = wins + losses
    if total == 0:
        return None
    return (Decimal(wins) / Decimal(total) * 100).quantize(Decimal("0.01"))


def apply_pick_result(
    model: AIModel,
    result: str,  # "win" | "loss"
    profit_loss_percent: Optional[float],
) -> AIModel:
    """
    Fold one resolved pick into a model's counters.
    IMPORTANT: runs inside the caller's transaction; no commit/rollback here.
    """
    model.total_picks = (model.total_picks or 0) + 1
    model.total_profit_loss = (model.total_profit_loss or Decimal("0")) + Decimal(str(profit_loss_percent or 0))

    streak = model.current_streak or 0
    if result == PickResult.WIN.value:
        model.total_wins = (model.total_wins or 0) + 1
        streak = streak + 1 if streak > 0 else 1
        if streak > (model.best_win_streak or 0):
            model.best_win_streak = streak
    else:
        model.total_losses = (model.total_losses or 0) + 1
        streak = streak - 1 if streak < 0 else -1
        if -streak > (model.worst_loss_streak or 0):
            model.worst_loss_streak = -streak
    model.current_streak = streak

    rate = win_rate_for(model.total_wins or 0, model.total_losses or 0)
    if rate is not None:
        model.win_rate = rate

    return model


def compute_model_stats(results: Iterable[tuple[str, Optional[float]]]) -> ModelStats:
    """
    One pass over (result, profit_loss_percent) pairs in resolution order.

    current_streak is signed: +n after n straight wins, -n after n straight losses.
    """
    stats = ModelStats()
    win_run = loss_run = 0

    for result, pnl in results:
        stats.total_profit_loss += float(pnl or 0)
        if result == PickResult.WIN.value:
            stats.wins += 1
            win_run += 1
            loss_run = 0
            stats.best_win_streak = max(stats.best_win_streak, win_run)
        elif result == PickResult.LOSS.value:
            stats.losses += 1
            loss_run += 1
            win_run = 0
            stats.worst_loss_streak = max(stats.worst_loss_streak, loss_run)

    stats.current_streak = win_run if win_run else -loss_run
    return stats


def apply_model_stats(model: AIModel, stats: ModelStats) -> AIModel:
    model.total_picks = stats.total
    model.total_wins = stats.wins
    model.total_losses = stats.losses
    model.total_profit_loss = Decimal(str(round(stats.total_profit_loss, 2)))
    model.current_streak = stats.current_streak
    model.best_win_streak = stats.best_win_streak
    model.worst_loss_streak = stats.worst_loss_streak

    rate = win_rate_for(stats.wins, stats.losses)
    if rate is not None:
        model.win_rate = rate
    return model


async def recompute_all_models(session: AsyncSession) -> list[dict]:
    """
    Rebuild every model's counters from its resolved picks and commit.
    Models without resolved picks keep their stored values.
    """
    res = await session.execute(select(AIModel))
    models = res.scalars().all()

    updated = []
    for model in models:
        picks_res = await session.execute(
            select(StockPick.result, StockPick.profit_loss_percent)
            .where(StockPick.ai_model_id == model.id)
            .where(StockPick.result.is_not(None))
            .order_by(StockPick.resolved_at.asc(), StockPick.created_at.asc())
        )
        rows = picks_res.all()
        if not rows:
            continue

        stats = compute_model_stats((r.result, r.profit_loss_percent) for r in rows)
        apply_model_stats(model, stats)

        updated.append({
            "name": model.name,
            "wins": stats.wins,
            "losses": stats.losses,
            "win_rate": float(model.win_rate),
            "current_streak": stats.current_streak,
        })

    await session.commit()
    logger.info("Recomputed stats for %d models", len(updated))
    return updated

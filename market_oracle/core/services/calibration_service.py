"""
Calibration Service
Weekly self-check per model: does its stated confidence match how often it wins
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from market_oracle.database.models import AIModel, ModelCalibration, StockPick, PickResult

logger = logging.getLogger(__name__)

WINDOW_DAYS = 30
MIN_PICKS = 5
# a category needs this many picks before it can count as strong/weak
MIN_CATEGORY_PICKS = 3


@dataclass
class Calibration:
    total_picks: int
    wins: int
    losses: int
    win_rate: float  # 0..1
    avg_return: float
    avg_confidence: float
    confidence_accuracy_correlation: float
    overconfidence_score: float
    best_categories: list[str] = field(default_factory=list)
    worst_categories: list[str] = field(default_factory=list)
    key_learnings: list[str] = field(default_factory=list)
    adjustments: list[str] = field(default_factory=list)


def correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation; 0 when undefined"""
    n = len(x)
    if n != len(y) or n < 2:
        return 0.0

    sum_x, sum_y = sum(x), sum(y)
    sum_xy = sum(a * b for a, b in zip(x, y))
    sum_x2 = sum(a * a for a in x)
    sum_y2 = sum(b * b for b in y)

    denominator = math.sqrt((n * sum_x2 - sum_x ** 2) * (n * sum_y2 - sum_y ** 2))
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def _category_accuracy(picks) -> list[tuple[str, float]]:
    totals: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for p in picks:
        totals[p.category][1] += 1
        if p.result == PickResult.WIN.value:
            totals[p.category][0] += 1

    return sorted(
        ((cat, wins / total) for cat, (wins, total) in totals.items() if total >= MIN_CATEGORY_PICKS),
        key=lambda item: item[1],
        reverse=True,
    )


def calibrate_picks(picks) -> Optional[Calibration]:
    """
    Calibration for one model's resolved picks.

    Each pick needs `result`, `confidence`, `profit_loss_percent` and `category`.
    Fewer than 5 picks is not enough to say anything: returns None.

    overconfidence_score = avg confidence - win rate * 100, so a model that
    claims 70 on average but wins half the time scores 20.
    """
    picks = [p for p in picks if p.result in (PickResult.WIN.value, PickResult.LOSS.value)]
    total = len(picks)
    if total < MIN_PICKS:
        return None

    outcomes = [1 if p.result == PickResult.WIN.value else 0 for p in picks]
    confidences = [float(p.confidence or 0) for p in picks]

    wins = sum(outcomes)
    win_rate = wins / total
    avg_confidence = sum(confidences) / total
    overconfidence = avg_confidence - win_rate * 100

    by_category = _category_accuracy(picks)
    best = [cat for cat, _ in by_category[:3]]
    worst = [cat for cat, _ in reversed(by_category[-3:])]

    learnings: list[str] = []
    adjustments: list[str] = []

    if win_rate > 0.65:
        learnings.append(f"Strong performance with {win_rate * 100:.0f}% win rate")
    elif win_rate < 0.45:
        learnings.append(f"Win rate needs improvement at {win_rate * 100:.0f}%")
        adjustments.append("Increase confidence threshold for picks to 75%+")

    if overconfidence > 15:
        learnings.append(f"Overconfident by {overconfidence:.0f} points")
        adjustments.append("Reduce confidence scores by 10-15% across the board")
    elif overconfidence < -10:
        learnings.append("Underconfident - accuracy exceeds confidence")
        adjustments.append("Can increase confidence on picks")

    if by_category and by_category[0][1] > 0.7:
        learnings.append(f"Strong in {best[0]} picks ({by_category[0][1] * 100:.0f}%)")
        adjustments.append(f"Prioritize {best[0]} picks")
    if by_category and by_category[-1][1] < 0.4:
        learnings.append(f"Weak in {worst[0]} picks")
        adjustments.append(f"Avoid or reduce confidence in {worst[0]} picks")

    return Calibration(
        total_picks=total,
        wins=wins,
        losses=total - wins,
        win_rate=win_rate,
        avg_return=sum(float(p.profit_loss_percent or 0) for p in picks) / total,
        avg_confidence=avg_confidence,
        confidence_accuracy_correlation=correlation(confidences, outcomes),
        overconfidence_score=overconfidence,
        best_categories=best,
        worst_categories=worst,
        key_learnings=learnings,
        adjustments=adjustments,
    )


async def run_weekly_calibration(session: AsyncSession, now: Optional[datetime] = None) -> dict:
    """
    Calibrate every active model on its last 30 days of resolved picks,
    store one snapshot per calibrated model and commit.
    """
    now = now or datetime.utcnow()
    since = now - timedelta(days=WINDOW_DAYS)

    res = await session.execute(select(AIModel).where(AIModel.is_active == True))  # noqa: E712
    models = res.scalars().all()

    calibrated, skipped = [], []
    for model in models:
        picks_res = await session.execute(
            select(StockPick.result, StockPick.confidence, StockPick.profit_loss_percent, StockPick.category)
            .where(StockPick.ai_model_id == model.id)
            .where(StockPick.result.is_not(None))
            .where(StockPick.created_at >= since)
        )
        rows = picks_res.all()

        cal = calibrate_picks(rows)
        if cal is None:
            logger.info("Skipping %s calibration - insufficient data (%d picks)", model.name, len(rows))
            skipped.append(model.name)
            continue

        session.add(ModelCalibration(ai_model_id=model.id, calibration_date=now, **asdict(cal)))
        calibrated.append({"name": model.name, **asdict(cal)})
        logger.info(
            "%s calibrated: %dW/%dL (%.0f%%), overconfidence %.1f",
            model.name, cal.wins, cal.losses, cal.win_rate * 100, cal.overconfidence_score,
        )

    await session.commit()
    return {"calibrated": calibrated, "skipped": skipped}


def serialize_calibration(c: ModelCalibration) -> dict:
    return {
        "calibration_date": c.calibration_date.isoformat(),
        "total_picks": c.total_picks,
        "wins": c.wins,
        "losses": c.losses,
        "win_rate": round(c.win_rate, 4),
        "avg_return": round(c.avg_return, 2),
        "avg_confidence": round(c.avg_confidence, 2),
        "confidence_accuracy_correlation": round(c.confidence_accuracy_correlation, 4),
        "overconfidence_score": round(c.overconfidence_score, 2),
        "best_categories": list(c.best_categories or []),
        "worst_categories": list(c.worst_categories or []),
        "key_learnings": list(c.key_learnings or []),
        "adjustments": list(c.adjustments or []),
    }


async def get_latest_calibrations(session: AsyncSession, model_name: Optional[str] = None) -> dict:
    """
    Latest snapshot per active model (None when never calibrated),
    keyed by model name. `model_name` narrows it to one model.
    """
    res = await session.execute(
        select(AIModel).where(AIModel.is_active == True).order_by(AIModel.name)  # noqa: E712
    )
    models = res.scalars().all()
    if model_name:
        models = [m for m in models if m.name.lower() == model_name.lower()]

    latest = {}
    for model in models:
        cal_res = await session.execute(
            select(ModelCalibration)
            .where(ModelCalibration.ai_model_id == model.id)
            .order_by(desc(ModelCalibration.calibration_date))
            .limit(1)
        )
        cal = cal_res.scalar_one_or_none()
        latest[model.name] = serialize_calibration(cal) if cal else None
    return latest


def calibration_report(calibrations: dict, now: Optional[datetime] = None) -> str:
    """Markdown summary of the latest snapshots"""
    now = now or datetime.utcnow()
    lines = ["# Market Oracle AI Calibration Report", f"Generated: {now.isoformat()}", ""]

    for name, cal in calibrations.items():
        if not cal:
            continue
        lines += [
            f"## {name.upper()}",
            f"- Win Rate: {cal['win_rate'] * 100:.1f}%",
            f"- Total Picks: {cal['total_picks']}",
            f"- Avg Return: {cal['avg_return']:.2f}%",
            f"- Overconfidence: {cal['overconfidence_score']:.1f}",
            f"- Best Categories: {', '.join(cal['best_categories']) or 'N/A'}",
            "",
            "### Key Learnings",
            *(f"- {item}" for item in cal["key_learnings"]),
            "",
            "### Adjustments",
            *(f"- {item}" for item in cal["adjustments"]),
            "",
        ]

    return "\n".join(lines) + "\n"

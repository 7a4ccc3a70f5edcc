"""
Challenge Service
90-day paper-trading challenge: enrollment, trades, milestones and prizes
"""

import logging
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from market_oracle.core.services.credit_service import add_credits
from market_oracle.database.models import (
    Challenge, ChallengeEnrollment, ChallengeTrade,
    EnrollmentStatus, TradeAction, CreditTransactionType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Milestone:
    day: int
    name: str
    reward: int
    requirement: str


@dataclass(frozen=True)
class Prize:
    credits: int
    badge: str
    certificate: bool


DURATION_DAYS = 90
STARTING_BALANCE = Decimal("10000")
MAX_POSITIONS = 10
POSITION_SIZE_MAX = Decimal("0.25")
PRIZE_POOL = 10000

# "beat the market" means more than this return over 30 days
MARKET_BENCHMARK_PCT = 2.0

MILESTONES: tuple[Milestone, ...] = (
    Milestone(7, "Week 1 Warrior", 50, "complete_first_week"),
    Milestone(14, "Consistent Trader", 100, "positive_return_2_weeks"),
    Milestone(30, "Monthly Master", 200, "beat_market_30_days"),
    Milestone(45, "Halfway Hero", 300, "portfolio_positive"),
    Milestone(60, "Two Month Titan", 200, "10_percent_gain"),
    Milestone(90, "Challenge Champion", 1000, "complete_challenge"),
)

LEADERBOARD_PRIZES: dict = {
    1: Prize(5000, "Gold Champion", True),
    2: Prize(2500, "Silver Medalist", True),
    3: Prize(1000, "Bronze Winner", True),
    "top10": Prize(500, "Top 10 Finisher", False),
}


class ChallengeError(Exception):
    """Rejected challenge operation"""
    status_code = 400


class ChallengeNotFound(ChallengeError):
    status_code = 404


def challenge_config() -> dict:
    return {
        "duration_days": DURATION_DAYS,
        "starting_balance": float(STARTING_BALANCE),
        "max_positions": MAX_POSITIONS,
        "position_size_max": float(POSITION_SIZE_MAX),
        "milestones": [asdict(m) for m in MILESTONES],
        "leaderboard_prizes": {str(k): asdict(v) for k, v in LEADERBOARD_PRIZES.items()},
    }


def get_prize_for_rank(rank: int) -> Optional[Prize]:
    if rank in (1, 2, 3):
        return LEADERBOARD_PRIZES[rank]
    if 4 <= rank <= 10:
        return LEADERBOARD_PRIZES["top10"]
    return None


def _requirement_met(requirement: str, enrollment) -> bool:
    day = enrollment.current_day or 0
    ret = float(enrollment.total_return_percent or 0)

    if requirement == "complete_first_week":
        return day >= 7
    if requirement == "positive_return_2_weeks":
        return day >= 14 and ret > 0
    if requirement == "beat_market_30_days":
        return day >= 30 and ret > MARKET_BENCHMARK_PCT
    if requirement == "portfolio_positive":
        starting = Decimal(str(enrollment.starting_balance or STARTING_BALANCE))
        return day >= 45 and Decimal(str(enrollment.current_balance or 0)) > starting
    if requirement == "10_percent_gain":
        return ret >= 10
    if requirement == "complete_challenge":
        return day >= DURATION_DAYS
    return False


def evaluate_milestones(enrollment) -> list[Milestone]:
    """
    Milestones newly earned by this enrollment state.
    Already achieved names are never returned again.
    """
    achieved = set(enrollment.milestones_achieved or [])
    day = enrollment.current_day or 0

    return [
        m for m in MILESTONES
        if m.name not in achieved
        and day >= m.day
        and _requirement_met(m.requirement, enrollment)
    ]


def elapsed_day(start_date: datetime, now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    return min(DURATION_DAYS, max(1, (now - start_date).days + 1))


def refresh_current_day(enrollment: ChallengeEnrollment, now: Optional[datetime] = None) -> int:
    """Advance current_day from the calendar; never moves it backwards"""
    if enrollment.start_date:
        enrollment.current_day = max(enrollment.current_day or 1, elapsed_day(enrollment.start_date, now))
    return enrollment.current_day


def serialize_enrollment(e: ChallengeEnrollment) -> dict:
    return {
        "id": str(e.id),
        "user_id": e.user_id,
        "challenge_id": str(e.challenge_id),
        "start_date": e.start_date.isoformat() if e.start_date else None,
        "end_date": e.end_date.isoformat() if e.end_date else None,
        "starting_balance": float(e.starting_balance or 0),
        "current_balance": float(e.current_balance or 0),
        "total_return_percent": e.total_return_percent,
        "total_trades": e.total_trades,
        "winning_trades": e.winning_trades,
        "current_day": e.current_day,
        "status": e.status,
        "milestones_achieved": list(e.milestones_achieved or []),
        "final_rank": e.final_rank,
    }


async def get_active_challenge(session: AsyncSession) -> Optional[Challenge]:
    res = await session.execute(
        select(Challenge)
        .where(Challenge.status == "active")
        .order_by(Challenge.created_at.desc())
        .limit(1)
    )
    return res.scalar_one_or_none()


async def get_active_enrollment(
    session: AsyncSession,
    user_id: str,
    challenge_id: Optional[uuid.UUID] = None,
    lock: bool = False,
) -> Optional[ChallengeEnrollment]:
    q = (
        select(ChallengeEnrollment)
        .where(ChallengeEnrollment.user_id == user_id)
        .where(ChallengeEnrollment.status == EnrollmentStatus.ACTIVE.value)
    )
    if challenge_id:
        q = q.where(ChallengeEnrollment.challenge_id == challenge_id)
    if lock:
        q = q.with_for_update()
    res = await session.execute(q.order_by(ChallengeEnrollment.created_at.desc()).limit(1))
    return res.scalar_one_or_none()


async def _rank_of(session: AsyncSession, enrollment: ChallengeEnrollment) -> int:
    res = await session.execute(
        select(func.count(ChallengeEnrollment.id))
        .where(ChallengeEnrollment.challenge_id == enrollment.challenge_id)
        .where(ChallengeEnrollment.total_return_percent > enrollment.total_return_percent)
    )
    return (res.scalar() or 0) + 1


async def _has_entered(session: AsyncSession, user_id: str, challenge_id: uuid.UUID) -> bool:
    """Any enrollment of this user in the challenge, whatever its status"""
    res = await session.execute(
        select(func.count(ChallengeEnrollment.id))
        .where(ChallengeEnrollment.user_id == user_id)
        .where(ChallengeEnrollment.challenge_id == challenge_id)
    )
    return (res.scalar() or 0) > 0


async def _shares_held(session: AsyncSession, enrollment_id: uuid.UUID, ticker: str) -> Decimal:
    res = await session.execute(
        select(ChallengeTrade.action, func.sum(ChallengeTrade.shares))
        .where(ChallengeTrade.enrollment_id == enrollment_id)
        .where(ChallengeTrade.ticker == ticker)
        .group_by(ChallengeTrade.action)
    )
    totals = {action: Decimal(total or 0) for action, total in res.all()}
    return totals.get(TradeAction.BUY.value, Decimal("0")) - totals.get(TradeAction.SELL.value, Decimal("0"))


async def enroll(session: AsyncSession, user_id: str) -> ChallengeEnrollment:
    """
    Enroll a user in the active challenge, creating the challenge if needed.
    A user enters each challenge once; a completed run cannot be restarted.
    """
    if await get_active_enrollment(session, user_id):
        raise ChallengeError("Already enrolled in active challenge")

    now = datetime.utcnow()
    challenge = await get_active_challenge(session)
    if challenge and await _has_entered(session, user_id, challenge.id):
        raise ChallengeError("Already participated in this challenge")

    if not challenge:
        challenge = Challenge(
            name=f"90-Day Challenge - {now.strftime('%B %Y')}",
            start_date=now,
            end_date=now + timedelta(days=DURATION_DAYS),
            status="active",
            prize_pool=PRIZE_POOL,
            participant_count=0,
        )
        session.add(challenge)
        await session.flush()

    enrollment = ChallengeEnrollment(
        user_id=user_id,
        challenge_id=challenge.id,
        start_date=now,
        end_date=now + timedelta(days=DURATION_DAYS),
        starting_balance=STARTING_BALANCE,
        current_balance=STARTING_BALANCE,
        total_return_percent=0.0,
        total_trades=0,
        winning_trades=0,
        current_day=1,
        status=EnrollmentStatus.ACTIVE.value,
        milestones_achieved=[],
    )
    session.add(enrollment)
    challenge.participant_count = (challenge.participant_count or 0) + 1

    await session.commit()
    logger.info("User %s enrolled in %s", user_id, challenge.name)
    return enrollment


async def record_trade(
    session: AsyncSession,
    user_id: str,
    ticker: str,
    action: str,
    shares: Decimal,
    price: Decimal,
    challenge_id: Optional[uuid.UUID] = None,
    ai_model_id: Optional[uuid.UUID] = None,
) -> dict:
    """
    Record a simulated buy/sell against the enrollment's cash balance.

    A single trade may use at most 25% of the current balance, and a sell
    may not exceed the shares bought so far.
    A sell above the last buy price of the same ticker counts as a winning trade.
    """
    action = (action or "").lower()
    if action not in (TradeAction.BUY.value, TradeAction.SELL.value):
        raise ChallengeError("Invalid action")
    if shares <= 0 or price <= 0:
        raise ChallengeError("Shares and price must be positive")

    ticker = ticker.strip().upper()
    enrollment = await get_active_enrollment(session, user_id, challenge_id, lock=True)
    if not enrollment:
        raise ChallengeNotFound("No active enrollment found")

    balance = Decimal(enrollment.current_balance)
    trade_value = (shares * price).quantize(Decimal("0.01"))

    if balance <= 0 or trade_value / balance > POSITION_SIZE_MAX:
        raise ChallengeError(f"Position too large. Max {int(POSITION_SIZE_MAX * 100)}% per trade")

    if action == TradeAction.SELL.value:
        held = await _shares_held(session, enrollment.id, ticker)
        if shares > held:
            raise ChallengeError(f"Not enough {ticker} shares to sell (held {held.normalize()})")

        last_buy = (await session.execute(
            select(ChallengeTrade.price)
            .where(ChallengeTrade.enrollment_id == enrollment.id)
            .where(ChallengeTrade.ticker == ticker)
            .where(ChallengeTrade.action == TradeAction.BUY.value)
            .order_by(desc(ChallengeTrade.created_at))
            .limit(1)
        )).scalar_one_or_none()
        if last_buy is not None and price > Decimal(last_buy):
            enrollment.winning_trades = (enrollment.winning_trades or 0) + 1
        new_balance = balance + trade_value
    else:
        new_balance = balance - trade_value

    trade = ChallengeTrade(
        enrollment_id=enrollment.id,
        user_id=user_id,
        ticker=ticker,
        action=action,
        shares=shares,
        price=price,
        total_value=trade_value,
        ai_model_id=ai_model_id,
    )
    session.add(trade)

    starting = Decimal(enrollment.starting_balance or STARTING_BALANCE)
    total_return = float((new_balance - starting) / starting * 100)

    enrollment.current_balance = new_balance
    enrollment.total_return_percent = round(total_return, 2)
    enrollment.total_trades = (enrollment.total_trades or 0) + 1
    refresh_current_day(enrollment)

    await session.commit()

    return {
        "trade": {
            "ticker": ticker,
            "action": action,
            "shares": float(shares),
            "price": float(price),
            "total_value": float(trade_value),
            "ai_model_id": str(ai_model_id) if ai_model_id else None,
        },
        "new_balance": float(new_balance),
        "total_return_percent": enrollment.total_return_percent,
    }


async def check_milestones(
    session: AsyncSession,
    user_id: str,
    challenge_id: Optional[uuid.UUID] = None,
) -> dict:
    """
    Award every newly satisfied milestone; all rewards go into one credit transaction.
    Re-running with unchanged state awards nothing.
    """
    enrollment = await get_active_enrollment(session, user_id, challenge_id, lock=True)
    if not enrollment:
        raise ChallengeNotFound("Enrollment not found")

    refresh_current_day(enrollment)
    achieved = list(enrollment.milestones_achieved or [])
    new = evaluate_milestones(enrollment)
    credits = sum(m.reward for m in new)

    if new:
        # reassign so the ARRAY change is tracked
        enrollment.milestones_achieved = achieved + [m.name for m in new]
        await add_credits(
            session,
            user_id,
            credits,
            CreditTransactionType.MILESTONE_REWARD,
            f"90-Day Challenge milestones: {', '.join(m.name for m in new)}",
        )

    await session.commit()

    return {
        "new_milestones": [m.name for m in new],
        "credits_earned": credits,
        "total_milestones": len(achieved) + len(new),
    }


async def complete_challenge(
    session: AsyncSession,
    user_id: str,
    challenge_id: Optional[uuid.UUID] = None,
) -> dict:
    """
    Close the user's enrollment, rank it and pay the prize for that rank.
    Only allowed once the run reaches day 90 or its end date has passed.
    """
    enrollment = await get_active_enrollment(session, user_id, challenge_id, lock=True)
    if not enrollment:
        raise ChallengeNotFound("Enrollment not found")

    now = datetime.utcnow()
    day = refresh_current_day(enrollment, now)
    if day < DURATION_DAYS and (enrollment.end_date is None or now < enrollment.end_date):
        raise ChallengeError(f"Challenge still running: day {day} of {DURATION_DAYS}")

    final_rank = await _rank_of(session, enrollment)
    prize = get_prize_for_rank(final_rank)

    enrollment.status = EnrollmentStatus.COMPLETED.value
    enrollment.completed_at = now
    enrollment.final_rank = final_rank

    if prize:
        await add_credits(
            session,
            user_id,
            prize.credits,
            CreditTransactionType.CHALLENGE_PRIZE,
            f"90-Day Challenge {prize.badge} - Rank #{final_rank}",
        )

    await session.commit()

    return {
        "final_rank": final_rank,
        "final_return": enrollment.total_return_percent,
        "prize": asdict(prize) if prize else None,
        "message": (
            f"Congratulations! You finished #{final_rank} and earned {prize.credits} credits!"
            if prize else f"Challenge completed! Final rank: #{final_rank}"
        ),
    }


async def get_status(session: AsyncSession, user_id: Optional[str]) -> dict:
    enrollment = await get_active_enrollment(session, user_id) if user_id else None
    challenge = await get_active_challenge(session)

    position = None
    if enrollment:
        refresh_current_day(enrollment)
        position = await _rank_of(session, enrollment)
        await session.commit()

    return {
        "enrolled": enrollment is not None,
        "enrollment": serialize_enrollment(enrollment) if enrollment else None,
        "current_challenge": {
            "id": str(challenge.id),
            "name": challenge.name,
            "start_date": challenge.start_date.isoformat(),
            "end_date": challenge.end_date.isoformat(),
            "prize_pool": challenge.prize_pool,
            "participant_count": challenge.participant_count,
        } if challenge else None,
        "leaderboard_position": position,
        "config": challenge_config(),
    }


async def get_challenge_leaderboard(
    session: AsyncSession,
    challenge_id: Optional[uuid.UUID] = None,
    limit: int = 100,
) -> dict:
    q = (
        select(ChallengeEnrollment)
        .order_by(desc(ChallengeEnrollment.total_return_percent))
        .limit(min(max(limit, 1), 100))
    )
    if challenge_id:
        q = q.where(ChallengeEnrollment.challenge_id == challenge_id)

    rows = (await session.execute(q)).scalars().all()

    leaderboard = []
    for i, e in enumerate(rows):
        prize = get_prize_for_rank(i + 1)
        leaderboard.append({
            "rank": i + 1,
            "user_id": e.user_id,
            "total_return_percent": e.total_return_percent,
            "total_trades": e.total_trades,
            "winning_trades": e.winning_trades,
            "current_balance": float(e.current_balance or 0),
            "milestones_achieved": list(e.milestones_achieved or []),
            "prize": asdict(prize) if prize else None,
        })

    return {
        "leaderboard": leaderboard,
        "prizes": challenge_config()["leaderboard_prizes"],
    }


async def get_milestones(session: AsyncSession, user_id: Optional[str]) -> dict:
    if not user_id:
        return {"milestones": [asdict(m) for m in MILESTONES]}

    enrollment = await get_active_enrollment(session, user_id)
    day = 0
    if enrollment:
        day = refresh_current_day(enrollment)
        await session.commit()
    achieved = set(enrollment.milestones_achieved or []) if enrollment else set()

    return {
        "milestones": [
            {**asdict(m), "achieved": m.name in achieved, "available": bool(enrollment) and day >= m.day}
            for m in MILESTONES
        ],
        "current_day": day,
    }


async def get_history(session: AsyncSession, user_id: Optional[str]) -> list[dict]:
    if not user_id:
        return []

    res = await session.execute(
        select(ChallengeEnrollment, Challenge)
        .join(Challenge, Challenge.id == ChallengeEnrollment.challenge_id)
        .where(ChallengeEnrollment.user_id == user_id)
        .order_by(desc(ChallengeEnrollment.created_at))
    )
    return [
        {
            **serialize_enrollment(e),
            "challenge": {
                "name": c.name,
                "start_date": c.start_date.isoformat(),
                "end_date": c.end_date.isoformat(),
            },
        }
        for e, c in res.all()
    ]

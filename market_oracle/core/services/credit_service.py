"""
Credit Service
Append-only credit ledger, cached balances and premium feature gating
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from market_oracle.database.models import (
    UserCredits, CreditTransaction, UserSubscription, CreditTransactionType,
)

logger = logging.getLogger(__name__)


TIER_FEATURES: dict[str, list[str]] = {
    "free": ["basic_quotes", "daily_picks_3", "news_summary"],
    "starter": ["basic_quotes", "daily_picks_10", "news_summary", "ai_analysis_basic", "price_alerts_5"],
    "pro": [
        "all_quotes", "unlimited_picks", "news_full", "ai_analysis_advanced", "price_alerts_50",
        "insider_trades", "earnings_calendar", "pattern_scanner",
    ],
    "enterprise": [
        "all_quotes", "unlimited_picks", "news_full", "ai_analysis_premium", "unlimited_alerts",
        "insider_trades", "earnings_calendar", "pattern_scanner", "api_access", "custom_models",
        "priority_support",
    ],
}

# pay-per-use features outside a tier
FEATURE_COSTS: dict[str, int] = {
    "ai_analysis_basic": 1,
    "ai_analysis_advanced": 3,
    "ai_analysis_premium": 5,
    "pattern_scan": 2,
    "sentiment_analysis": 2,
    "price_prediction": 5,
    "portfolio_analysis": 10,
    "custom_report": 20,
}


class CreditError(Exception):
    """Credit operation rejected"""
    pass


@dataclass
class Access:
    allowed: bool
    tier: str
    cost: int = 0  # credits to charge when allowed through credits
    reason: Optional[str] = None
    insufficient_credits: bool = False


async def _get_credits_row(session: AsyncSession, user_id: str, lock: bool = False) -> Optional[UserCredits]:
    q = select(UserCredits).where(UserCredits.user_id == user_id)
    if lock:
        q = q.with_for_update()
    res = await session.execute(q)
    return res.scalar_one_or_none()


async def get_balance(session: AsyncSession, user_id: str) -> int:
    row = await _get_credits_row(session, user_id)
    return row.balance if row else 0


async def add_credits(
    session: AsyncSession,
    user_id: str,
    amount: int,
    type: CreditTransactionType,
    description: str,
) -> CreditTransaction:
    """
    Append one ledger row and move the cached balance with it.
    IMPORTANT: runs inside the caller's transaction; no commit/rollback here.
    """
    if amount == 0:
        raise CreditError("Amount must be non-zero")

    row = await _get_credits_row(session, user_id, lock=True)
    if not row:
        row = UserCredits(user_id=user_id, balance=0)
        session.add(row)
        await session.flush()

    new_balance = (row.balance or 0) + amount
    if new_balance < 0:
        raise CreditError("Insufficient credits")

    row.balance = new_balance
    row.updated_at = datetime.utcnow()

    tx = CreditTransaction(
        user_id=user_id,
        amount=amount,
        type=type.value,
        description=description,
        balance_after=new_balance,
    )
    session.add(tx)
    await session.flush()

    logger.info("Credits %+d for %s (%s), balance %d", amount, user_id, type.value, new_balance)
    return tx


async def get_tier(session: AsyncSession, user_id: str) -> str:
    res = await session.execute(
        select(UserSubscription.plan_id)
        .where(UserSubscription.user_id == user_id)
        .where(UserSubscription.status == "active")
        .order_by(UserSubscription.created_at.desc())
        .limit(1)
    )
    plan = res.scalar_one_or_none()
    return plan if plan in TIER_FEATURES else "free"


def tier_allows(tier: str, feature: str) -> bool:
    features = TIER_FEATURES.get(tier, TIER_FEATURES["free"])
    return feature in features or "all_quotes" in features


async def check_access(session: AsyncSession, user_id: str, feature: str) -> Access:
    """
    Tier first, then credits for pay-per-use features.
    """
    tier = await get_tier(session, user_id)
    if tier_allows(tier, feature):
        return Access(allowed=True, tier=tier)

    cost = FEATURE_COSTS.get(feature)
    if cost:
        balance = await get_balance(session, user_id)
        if balance >= cost:
            return Access(allowed=True, tier=tier, cost=cost)
        return Access(
            allowed=False,
            tier=tier,
            cost=cost,
            reason=f"Requires {cost} credits (you have {balance})",
            insufficient_credits=True,
        )

    return Access(
        allowed=False,
        tier=tier,
        reason=f"Requires {'Starter' if tier == 'free' else 'Pro'} plan or higher",
    )


async def deduct_credits(
    session: AsyncSession,
    user_id: str,
    feature: str,
    description: Optional[str] = None,
) -> bool:
    """
    Charge a feature's cost. False when the balance does not cover it.
    """
    cost = FEATURE_COSTS.get(feature)
    if not cost:
        return True

    try:
        await add_credits(
            session,
            user_id,
            -cost,
            CreditTransactionType.AI_USAGE,
            description or f"Market Oracle: {feature}",
        )
    except CreditError:
        return False
    return True


async def get_transactions(session: AsyncSession, user_id: str, limit: int = 20) -> list[dict]:
    res = await session.execute(
        select(CreditTransaction)
        .where(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.created_at.desc())
        .limit(limit)
    )
    return [
        {
            "amount": tx.amount,
            "type": tx.type,
            "description": tx.description,
            "balance_after": tx.balance_after,
            "created_at": tx.created_at.isoformat() if tx.created_at else None,
        }
        for tx in res.scalars().all()
    ]

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from market_oracle.core.services.credit_service import (
    add_credits, check_access, deduct_credits, tier_allows, CreditError,
)
from market_oracle.database.models import CreditTransactionType

SERVICE = "market_oracle.core.services.credit_service"


def _session_with_row(row):
    session = AsyncMock()
    session.add = MagicMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    session.execute.return_value = result
    return session


def test_tier_allows():
    assert tier_allows("free", "basic_quotes")
    assert not tier_allows("free", "insider_trades")
    assert tier_allows("starter", "ai_analysis_basic")
    assert tier_allows("pro", "insider_trades")
    # all_quotes tiers unlock everything
    assert tier_allows("pro", "custom_report")
    assert not tier_allows("unknown", "insider_trades")


async def test_check_access_included_in_tier_costs_nothing():
    with patch(f"{SERVICE}.get_tier", AsyncMock(return_value="pro")):
        access = await check_access(AsyncMock(), "u1", "insider_trades")
    assert access.allowed
    assert access.cost == 0


async def test_check_access_pay_per_use_with_credits():
    with patch(f"{SERVICE}.get_tier", AsyncMock(return_value="free")), \
         patch(f"{SERVICE}.get_balance", AsyncMock(return_value=5)):
        access = await check_access(AsyncMock(), "u1", "ai_analysis_advanced")
    assert access.allowed
    assert access.cost == 3


async def test_check_access_insufficient_credits():
    with patch(f"{SERVICE}.get_tier", AsyncMock(return_value="free")), \
         patch(f"{SERVICE}.get_balance", AsyncMock(return_value=2)):
        access = await check_access(AsyncMock(), "u1", "portfolio_analysis")
    assert not access.allowed
    assert access.insufficient_credits
    assert access.reason == "Requires 10 credits (you have 2)"


async def test_check_access_plan_only_feature():
    with patch(f"{SERVICE}.get_tier", AsyncMock(return_value="free")):
        access = await check_access(AsyncMock(), "u1", "insider_trades")
    assert not access.allowed
    assert not access.insufficient_credits
    assert access.reason == "Requires Starter plan or higher"


async def test_add_credits_moves_balance_with_ledger_row():
    row = SimpleNamespace(user_id="u1", balance=100, updated_at=None)
    session = _session_with_row(row)

    tx = await add_credits(session, "u1", 50, CreditTransactionType.MILESTONE_REWARD, "bonus")

    assert row.balance == 150
    assert tx.amount == 50
    assert tx.balance_after == 150
    assert tx.type == "milestone_reward"
    session.commit.assert_not_awaited()


async def test_add_credits_refuses_negative_balance():
    session = _session_with_row(SimpleNamespace(user_id="u1", balance=2, updated_at=None))

    with pytest.raises(CreditError):
        await add_credits(session, "u1", -5, CreditTransactionType.AI_USAGE, "usage")
    session.add.assert_not_called()


async def test_add_credits_creates_missing_row():
    session = _session_with_row(None)

    tx = await add_credits(session, "new-user", 25, CreditTransactionType.CHALLENGE_PRIZE, "prize")

    assert tx.balance_after == 25
    assert session.add.call_count == 2


async def test_deduct_credits_reports_shortfall():
    session = _session_with_row(SimpleNamespace(user_id="u1", balance=0, updated_at=None))
    assert await deduct_credits(session, "u1", "ai_analysis_basic") is False
    assert await deduct_credits(session, "u1", "not_priced") is True

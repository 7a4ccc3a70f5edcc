from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from market_oracle.core.services.challenge_service import (
    MILESTONES, check_milestones, complete_challenge, elapsed_day, enroll, evaluate_milestones,
    get_milestones, get_prize_for_rank, get_status, record_trade, refresh_current_day,
    ChallengeError, ChallengeNotFound,
)
from market_oracle.database.models import CreditTransactionType


def _enrollment(**kw):
    defaults = dict(
        id="enr-1",
        user_id="user-1",
        challenge_id="ch-1",
        status="active",
        final_rank=None,
        end_date=datetime.utcnow() + timedelta(days=89),
        current_day=1,
        total_return_percent=0.0,
        starting_balance=Decimal("10000"),
        current_balance=Decimal("10000"),
        milestones_achieved=[],
        start_date=datetime.utcnow(),
        total_trades=0,
        winning_trades=0,
    )
    return SimpleNamespace(**{**defaults, **kw})


def test_final_day_with_ten_percent_awards_both_rewards():
    earlier = [m.name for m in MILESTONES if m.day < 60]
    enrollment = _enrollment(current_day=90, total_return_percent=12.0, milestones_achieved=earlier)

    new = evaluate_milestones(enrollment)

    assert {m.requirement for m in new} == {"10_percent_gain", "complete_challenge"}
    assert sum(m.reward for m in new) == 1200


def test_first_week_only_needs_the_day():
    new = evaluate_milestones(_enrollment(current_day=7, total_return_percent=-5.0))
    assert [m.name for m in new] == ["Week 1 Warrior"]


def test_no_milestones_before_their_day():
    assert evaluate_milestones(_enrollment(current_day=6, total_return_percent=50.0)) == []


def test_beat_market_needs_more_than_benchmark():
    day30 = dict(current_day=30, milestones_achieved=["Week 1 Warrior", "Consistent Trader"])
    assert evaluate_milestones(_enrollment(total_return_percent=2.0, **day30)) == []
    assert [m.name for m in evaluate_milestones(_enrollment(total_return_percent=2.5, **day30))] == ["Monthly Master"]


def test_portfolio_positive_uses_balance():
    enrollment = _enrollment(
        current_day=45,
        current_balance=Decimal("10001"),
        total_return_percent=0.01,
        milestones_achieved=["Week 1 Warrior", "Consistent Trader"],
    )
    assert "Halfway Hero" in [m.name for m in evaluate_milestones(enrollment)]


def test_achieved_milestones_are_not_returned_again():
    enrollment = _enrollment(current_day=7)
    enrollment.milestones_achieved = [m.name for m in evaluate_milestones(enrollment)]
    assert evaluate_milestones(enrollment) == []


def test_prize_lookup():
    assert get_prize_for_rank(1).credits == 5000
    assert get_prize_for_rank(2).credits == 2500
    assert get_prize_for_rank(3).credits == 1000
    assert get_prize_for_rank(4).badge == "Top 10 Finisher"
    assert get_prize_for_rank(10).credits == 500
    assert get_prize_for_rank(11) is None


def test_elapsed_day_is_clamped():
    start = datetime(2026, 1, 1)
    assert elapsed_day(start, start) == 1
    assert elapsed_day(start, start + timedelta(days=6, hours=3)) == 7
    assert elapsed_day(start, start + timedelta(days=400)) == 90


def test_refresh_current_day_never_goes_back():
    enrollment = _enrollment(current_day=20, start_date=datetime.utcnow())
    assert refresh_current_day(enrollment) == 20


async def test_check_milestones_credits_once_then_nothing():
    earlier = [m.name for m in MILESTONES if m.day < 60]
    enrollment = _enrollment(
        current_day=90, total_return_percent=12.0, milestones_achieved=earlier,
        start_date=datetime.utcnow() - timedelta(days=95),
    )
    session = AsyncMock()
    add_credits = AsyncMock()

    with patch("market_oracle.core.services.challenge_service.get_active_enrollment",
               AsyncMock(return_value=enrollment)), \
         patch("market_oracle.core.services.challenge_service.add_credits", add_credits):
        first = await check_milestones(session, "user-1")
        second = await check_milestones(session, "user-1")

    assert first["credits_earned"] == 1200
    assert sorted(first["new_milestones"]) == ["Challenge Champion", "Two Month Titan"]
    assert first["total_milestones"] == len(MILESTONES)
    assert second == {"new_milestones": [], "credits_earned": 0, "total_milestones": len(MILESTONES)}

    add_credits.assert_awaited_once()
    args = add_credits.await_args.args
    assert args[1:4] == ("user-1", 1200, CreditTransactionType.MILESTONE_REWARD)


async def test_check_milestones_without_enrollment():
    with patch("market_oracle.core.services.challenge_service.get_active_enrollment",
               AsyncMock(return_value=None)):
        with pytest.raises(ChallengeNotFound):
            await check_milestones(AsyncMock(), "user-1")


async def test_trade_over_quarter_of_balance_is_rejected():
    session = AsyncMock()
    with patch("market_oracle.core.services.challenge_service.get_active_enrollment",
               AsyncMock(return_value=_enrollment())):
        with pytest.raises(ChallengeError) as exc:
            await record_trade(session, "user-1", "AAPL", "buy", Decimal("20"), Decimal("150"))

    assert "25%" in str(exc.value)
    session.commit.assert_not_awaited()


async def test_buy_moves_balance_and_return():
    enrollment = _enrollment()
    session = AsyncMock()
    session.add = lambda obj: None

    with patch("market_oracle.core.services.challenge_service.get_active_enrollment",
               AsyncMock(return_value=enrollment)):
        result = await record_trade(session, "user-1", "aapl", "BUY", Decimal("10"), Decimal("150"))

    assert result["trade"]["ticker"] == "AAPL"
    assert result["trade"]["total_value"] == 1500.0
    assert result["new_balance"] == 8500.0
    assert result["total_return_percent"] == -15.0
    assert enrollment.total_trades == 1
    session.commit.assert_awaited_once()


async def test_invalid_action_rejected():
    with pytest.raises(ChallengeError):
        await record_trade(AsyncMock(), "user-1", "AAPL", "short", Decimal("1"), Decimal("1"))


SERVICE = "market_oracle.core.services.challenge_service"


def _result(scalar=None, rows=None):
    res = MagicMock()
    res.scalar.return_value = scalar
    res.scalar_one_or_none.return_value = scalar
    res.all.return_value = rows or []
    return res


async def test_complete_before_day_90_is_refused():
    now = datetime.utcnow()
    enrollment = _enrollment(total_return_percent=25.0, start_date=now - timedelta(days=10), end_date=now + timedelta(days=80))
    session = AsyncMock()
    add_credits = AsyncMock()

    with patch(f"{SERVICE}.get_active_enrollment", AsyncMock(return_value=enrollment)), \
         patch(f"{SERVICE}.add_credits", add_credits):
        with pytest.raises(ChallengeError, match="still running: day 11 of 90"):
            await complete_challenge(session, "user-1")

    assert enrollment.status == "active"
    add_credits.assert_not_awaited()
    session.commit.assert_not_awaited()


async def test_complete_on_day_90_pays_rank_prize():
    now = datetime.utcnow()
    enrollment = _enrollment(total_return_percent=25.0, start_date=now - timedelta(days=95), end_date=now - timedelta(days=5))
    session = AsyncMock()
    add_credits = AsyncMock()

    with patch(f"{SERVICE}.get_active_enrollment", AsyncMock(return_value=enrollment)), \
         patch(f"{SERVICE}._rank_of", AsyncMock(return_value=1)), \
         patch(f"{SERVICE}.add_credits", add_credits):
        result = await complete_challenge(session, "user-1")

    assert result["final_rank"] == 1
    assert result["prize"]["credits"] == 5000
    assert enrollment.status == "completed"
    assert enrollment.current_day == 90
    assert add_credits.await_args.args[1:4] == ("user-1", 5000, CreditTransactionType.CHALLENGE_PRIZE)
    session.commit.assert_awaited_once()


async def test_complete_after_end_date_is_allowed():
    enrollment = _enrollment(start_date=None, current_day=40, end_date=datetime.utcnow() - timedelta(minutes=1))

    with patch(f"{SERVICE}.get_active_enrollment", AsyncMock(return_value=enrollment)), \
         patch(f"{SERVICE}._rank_of", AsyncMock(return_value=12)), \
         patch(f"{SERVICE}.add_credits", AsyncMock()) as add_credits:
        result = await complete_challenge(AsyncMock(), "user-1")

    assert result["prize"] is None
    assert enrollment.status == "completed"
    add_credits.assert_not_awaited()


async def test_reenroll_in_completed_challenge_is_refused():
    session = AsyncMock()
    session.add = MagicMock()
    session.execute.return_value = _result(scalar=1)

    with patch(f"{SERVICE}.get_active_enrollment", AsyncMock(return_value=None)), \
         patch(f"{SERVICE}.get_active_challenge", AsyncMock(return_value=SimpleNamespace(id="ch-1", name="90-Day"))):
        with pytest.raises(ChallengeError, match="Already participated in this challenge"):
            await enroll(session, "user-1")

    session.add.assert_not_called()
    session.commit.assert_not_awaited()


async def test_first_enrollment_in_challenge():
    challenge = SimpleNamespace(id="ch-1", name="90-Day Challenge", participant_count=4)
    session = AsyncMock()
    session.add = MagicMock()
    session.execute.return_value = _result(scalar=0)

    with patch(f"{SERVICE}.get_active_enrollment", AsyncMock(return_value=None)), \
         patch(f"{SERVICE}.get_active_challenge", AsyncMock(return_value=challenge)):
        enrollment = await enroll(session, "user-1")

    assert enrollment.challenge_id == "ch-1"
    assert enrollment.current_balance == Decimal("10000")
    assert challenge.participant_count == 5
    session.commit.assert_awaited_once()


async def test_sell_without_shares_is_refused():
    session = AsyncMock()
    session.execute.return_value = _result(rows=[("buy", Decimal("5"))])

    with patch(f"{SERVICE}.get_active_enrollment", AsyncMock(return_value=_enrollment())):
        with pytest.raises(ChallengeError, match="Not enough AAPL shares to sell"):
            await record_trade(session, "user-1", "AAPL", "sell", Decimal("10"), Decimal("150"))

    session.commit.assert_not_awaited()


async def test_sell_within_holdings_counts_win():
    enrollment = _enrollment()
    session = AsyncMock()
    session.add = MagicMock()
    session.execute.side_effect = [
        _result(rows=[("buy", Decimal("10")), ("sell", Decimal("2"))]),
        _result(scalar=Decimal("150")),
    ]

    with patch(f"{SERVICE}.get_active_enrollment", AsyncMock(return_value=enrollment)):
        result = await record_trade(session, "user-1", "AAPL", "sell", Decimal("5"), Decimal("160"))

    assert result["new_balance"] == 10800.0
    assert result["total_return_percent"] == 8.0
    assert enrollment.winning_trades == 1


async def test_status_persists_current_day():
    enrollment = _enrollment(current_day=1, start_date=datetime.utcnow() - timedelta(days=10))
    session = AsyncMock()

    with patch(f"{SERVICE}.get_active_enrollment", AsyncMock(return_value=enrollment)), \
         patch(f"{SERVICE}.get_active_challenge", AsyncMock(return_value=None)), \
         patch(f"{SERVICE}._rank_of", AsyncMock(return_value=3)):
        status = await get_status(session, "user-1")

    assert status["enrollment"]["current_day"] == 11
    assert status["leaderboard_position"] == 3
    session.commit.assert_awaited_once()


async def test_milestones_use_calendar_day():
    enrollment = _enrollment(current_day=1, start_date=datetime.utcnow() - timedelta(days=8))
    session = AsyncMock()

    with patch(f"{SERVICE}.get_active_enrollment", AsyncMock(return_value=enrollment)):
        data = await get_milestones(session, "user-1")

    available = {m["name"]: m["available"] for m in data["milestones"]}
    assert data["current_day"] == 9
    assert available["Week 1 Warrior"] is True
    assert available["Consistent Trader"] is False
    session.commit.assert_awaited_once()

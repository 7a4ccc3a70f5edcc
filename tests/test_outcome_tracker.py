import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from market_oracle.core.services.outcome_tracker import (
    determine_outcome, force_resolve_pick, process_expired_picks, OutcomeError, PickNotFound, PriceUnavailable,
)
from market_oracle.database.models import PickResult


def test_up_pick_wins_at_target():
    result, pnl = determine_outcome("UP", 100, 110, 110)
    assert result == PickResult.WIN
    assert pnl == 10.0


def test_up_pick_below_target_loses_with_positive_move():
    result, pnl = determine_outcome("UP", 100, 110, 105)
    assert result == PickResult.LOSS
    assert pnl == 5.0


def test_down_pick_pnl_is_inverted():
    result, pnl = determine_outcome("DOWN", 100, 90, 88)
    assert result == PickResult.WIN
    assert pnl == 12.0

    result, pnl = determine_outcome("DOWN", 100, 90, 104)
    assert result == PickResult.LOSS
    assert pnl == -4.0


def test_hold_pick_band():
    result, pnl = determine_outcome("HOLD", 100, 100, 102.5)
    assert result == PickResult.WIN
    assert pnl == -2.5

    result, _ = determine_outcome("HOLD", 100, 100, 96)
    assert result == PickResult.LOSS


def test_zero_entry_does_not_divide():
    result, pnl = determine_outcome("UP", 0, 10, 5)
    assert result == PickResult.LOSS
    assert pnl == 0.0


async def test_force_resolve_unknown_pick():
    session = AsyncMock()
    session.get.return_value = None

    with pytest.raises(PickNotFound):
        await force_resolve_pick(session, uuid.uuid4())


async def test_force_resolve_already_resolved():
    session = AsyncMock()
    session.get.return_value = SimpleNamespace(result="win")

    with pytest.raises(OutcomeError) as exc:
        await force_resolve_pick(session, uuid.uuid4())
    assert exc.value.status_code == 400


async def test_force_resolve_without_price():
    session = AsyncMock()
    session.get.return_value = SimpleNamespace(result=None, ticker="AAPL", category="regular")

    with patch("market_oracle.core.services.outcome_tracker.get_current_price", AsyncMock(return_value=None)):
        with pytest.raises(PriceUnavailable):
            await force_resolve_pick(session, uuid.uuid4())
    session.commit.assert_not_awaited()


NOW = datetime(2026, 10, 19, 21, 30)


def _pick(ticker, category="regular", direction="UP", entry="100", target="110"):
    return SimpleNamespace(
        id=uuid.uuid4(), ai_model_id=uuid.uuid4(), ticker=ticker, category=category,
        direction=direction, entry_price=Decimal(entry), target_price=Decimal(target),
        status="active", result=None, profit_loss_percent=None, closed_price=None, resolved_at=None,
        expiry_date=NOW - timedelta(hours=8),
    )


def _model():
    return SimpleNamespace(
        total_picks=0, total_wins=0, total_losses=0, win_rate=Decimal("0"),
        total_profit_loss=Decimal("0"), current_streak=0, best_win_streak=0, worst_loss_streak=0,
    )


def _session(picks, model):
    session = AsyncMock()
    res = MagicMock()
    res.scalars.return_value.all.return_value = picks
    session.execute.return_value = res
    session.get.return_value = model
    return session


async def test_expired_picks_resolve_once():
    model = _model()
    picks = [_pick("AAPL"), _pick("AAPL", direction="DOWN", target="90")]
    session = _session(picks, model)
    price = AsyncMock(return_value=112.0)

    with patch("market_oracle.core.services.outcome_tracker.get_current_price", price):
        first = await process_expired_picks(session, now=NOW)

    assert first == {"processed": 2, "wins": 1, "losses": 1, "errors": []}
    assert [p.result for p in picks] == ["win", "loss"]
    assert all(p.status == "expired" and p.resolved_at == NOW for p in picks)
    assert picks[0].closed_price == Decimal("112.0")
    assert model.total_picks == 2

    # a second run over the same rows refuses to fold them into the stats again
    with patch("market_oracle.core.services.outcome_tracker.get_current_price", price):
        with pytest.raises(OutcomeError, match="already resolved"):
            await process_expired_picks(session, now=NOW)
    assert model.total_picks == 2


async def test_ticker_without_quote_stays_active():
    model = _model()
    missing, quoted = _pick("WISH", category="penny"), _pick("MSFT")
    session = _session([missing, quoted], model)

    async def quote(ticker, category):
        return None if ticker == "WISH" else 120.0

    with patch("market_oracle.core.services.outcome_tracker.get_current_price", AsyncMock(side_effect=quote)):
        result = await process_expired_picks(session, now=NOW)

    assert result["processed"] == 1
    assert result["errors"] == ["Could not fetch price for WISH (penny)"]
    assert missing.status == "active"
    assert missing.result is None
    assert quoted.result == "win"
    assert model.total_picks == 1
    session.commit.assert_awaited_once()


async def test_one_quote_per_ticker_and_source():
    picks = [_pick("AAPL"), _pick("AAPL"), _pick("AAPL"), _pick("LINK", category="crypto")]
    session = _session(picks, _model())
    price = AsyncMock(return_value=None)

    with patch("market_oracle.core.services.outcome_tracker.get_current_price", price):
        result = await process_expired_picks(session, now=NOW)

    assert price.await_count == 2
    assert sorted(c.args for c in price.await_args_list) == [("AAPL", "regular"), ("LINK", "crypto")]
    assert result["errors"] == ["Could not fetch price for AAPL (regular)", "Could not fetch price for LINK (crypto)"]


async def test_nothing_expired_does_not_commit():
    session = _session([], _model())
    result = await process_expired_picks(session, now=NOW)

    assert result == {"processed": 0, "wins": 0, "losses": 0, "errors": []}
    session.commit.assert_not_awaited()

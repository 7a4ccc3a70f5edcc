import uuid
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from market_oracle.core.services.calibration_service import (
    calibrate_picks, calibration_report, correlation, get_latest_calibrations, run_weekly_calibration,
)
from market_oracle.database.models import ModelCalibration

NOW = datetime(2026, 10, 18, 1, 0)


def _pick(result, confidence, pnl, category="regular"):
    return SimpleNamespace(result=result, confidence=confidence, profit_loss_percent=pnl, category=category)


OVERCONFIDENT = [
    _pick("win", 90, 5.0),
    _pick("win", 85, 4.0),
    _pick("win", 80, 3.0),
    _pick("loss", 70, -2.0),
    _pick("loss", 60, -3.0, "penny"),
    _pick("loss", 55, -4.0, "penny"),
]


def test_correlation():
    assert correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)
    assert correlation([1, 2, 3], [3, 2, 1]) == pytest.approx(-1.0)
    assert correlation([70, 70, 70], [1, 0, 1]) == 0.0
    assert correlation([1], [1]) == 0.0
    assert correlation([1, 2], [1]) == 0.0


def test_fewer_than_five_picks_is_skipped():
    assert calibrate_picks(OVERCONFIDENT[:4]) is None
    assert calibrate_picks([]) is None


def test_overconfident_model():
    cal = calibrate_picks(OVERCONFIDENT)

    assert (cal.total_picks, cal.wins, cal.losses) == (6, 3, 3)
    assert cal.win_rate == 0.5
    assert cal.avg_confidence == pytest.approx(440 / 6)
    assert cal.overconfidence_score == pytest.approx(440 / 6 - 50)
    assert cal.avg_return == pytest.approx(0.5)
    assert cal.confidence_accuracy_correlation == pytest.approx(0.9113, abs=1e-3)

    # penny has only two picks, too few to rank
    assert cal.best_categories == ["regular"]
    assert cal.key_learnings == ["Overconfident by 23 points", "Strong in regular picks (75%)"]
    assert cal.adjustments == ["Reduce confidence scores by 10-15% across the board", "Prioritize regular picks"]


def test_losing_model_in_weak_category():
    picks = [_pick("win", 30, 6.0, "crypto")] + [_pick("loss", 30, -5.0, "crypto") for _ in range(4)]

    cal = calibrate_picks(picks)

    assert cal.win_rate == pytest.approx(0.2)
    assert cal.overconfidence_score == pytest.approx(10.0)
    assert cal.worst_categories == ["crypto"]
    assert cal.key_learnings == ["Win rate needs improvement at 20%", "Weak in crypto picks"]
    assert "Increase confidence threshold for picks to 75%+" in cal.adjustments


def test_unresolved_rows_are_ignored():
    assert calibrate_picks(OVERCONFIDENT[:4] + [_pick(None, 99, None)]) is None


def _result(rows=None, models=None, scalar=None):
    res = MagicMock()
    res.all.return_value = rows or []
    res.scalars.return_value.all.return_value = models or []
    res.scalar_one_or_none.return_value = scalar
    return res


async def test_weekly_run_stores_one_snapshot_per_calibrated_model():
    claude = SimpleNamespace(id=uuid.uuid4(), name="Claude")
    gemini = SimpleNamespace(id=uuid.uuid4(), name="Gemini")

    session = AsyncMock()
    session.add = MagicMock()
    session.execute.side_effect = [
        _result(models=[claude, gemini]),
        _result(rows=OVERCONFIDENT),
        _result(rows=OVERCONFIDENT[:2]),
    ]

    result = await run_weekly_calibration(session, now=NOW)

    assert [c["name"] for c in result["calibrated"]] == ["Claude"]
    assert result["skipped"] == ["Gemini"]

    snapshot = session.add.call_args.args[0]
    assert isinstance(snapshot, ModelCalibration)
    assert snapshot.ai_model_id == claude.id
    assert snapshot.calibration_date == NOW
    assert snapshot.total_picks == 6
    session.add.assert_called_once()
    session.commit.assert_awaited_once()

    picks_query = session.execute.await_args_list[1].args[0].compile(dialect=postgresql.dialect())
    assert "stock_picks.result IS NOT NULL" in str(picks_query)
    assert NOW - timedelta(days=30) in picks_query.params.values()


async def test_latest_calibrations_by_model():
    claude = SimpleNamespace(id=uuid.uuid4(), name="Claude")
    gemini = SimpleNamespace(id=uuid.uuid4(), name="Gemini")
    stored = ModelCalibration(
        ai_model_id=claude.id, calibration_date=NOW, total_picks=6, wins=3, losses=3, win_rate=0.5,
        avg_return=0.5, avg_confidence=73.3333, confidence_accuracy_correlation=0.91127,
        overconfidence_score=23.3333, best_categories=["regular"], worst_categories=["regular"],
        key_learnings=["Overconfident by 23 points"], adjustments=[],
    )

    session = AsyncMock()
    session.execute.side_effect = [_result(models=[claude, gemini]), _result(scalar=stored), _result()]

    latest = await get_latest_calibrations(session)

    assert latest["Gemini"] is None
    assert latest["Claude"]["calibration_date"] == "2026-10-18T01:00:00"
    assert latest["Claude"]["avg_confidence"] == 73.33
    assert latest["Claude"]["confidence_accuracy_correlation"] == 0.9113


async def test_latest_calibrations_for_one_model():
    claude = SimpleNamespace(id=uuid.uuid4(), name="Claude")
    gemini = SimpleNamespace(id=uuid.uuid4(), name="Gemini")

    session = AsyncMock()
    session.execute.side_effect = [_result(models=[claude, gemini]), _result()]

    assert await get_latest_calibrations(session, model_name="gemini") == {"Gemini": None}
    assert session.execute.await_count == 2


def test_report_skips_uncalibrated_models():
    report = calibration_report({
        "Claude": {
            "win_rate": 0.5, "total_picks": 6, "avg_return": 0.5, "overconfidence_score": 23.33,
            "best_categories": [], "key_learnings": ["Overconfident by 23 points"], "adjustments": [],
        },
        "Gemini": None,
    }, now=NOW)

    assert report.startswith("# Market Oracle AI Calibration Report\nGenerated: 2026-10-18T01:00:00\n")
    assert "## CLAUDE\n- Win Rate: 50.0%\n- Total Picks: 6\n" in report
    assert "- Best Categories: N/A" in report
    assert "GEMINI" not in report

from unittest.mock import AsyncMock, patch

from market_oracle.core.services import jobs, run_pick_cycle
from market_oracle.core.services.alerts import pick_cycle_report
from market_oracle.database.connection import async_database_url


def test_async_database_url():
    assert async_database_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert async_database_url("postgres://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert async_database_url("postgresql+asyncpg://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"


def test_pick_cycle_report():
    assert pick_cycle_report({"errors": [], "total": 75}) is None

    report = pick_cycle_report({
        "errors": ["GPT-4/regular: timeout", "Gemini/penny: 429", "Claude/crypto: 500", "Javari/crypto: 500"],
        "total": 40,
        "prices_available": 29,
    })
    assert report.startswith("⚠️ Pick generation finished with 4 errors")
    assert "Picks: 40 (29 prices)" in report
    assert "└ Claude/crypto: 500" in report
    assert "Javari" not in report


async def test_job_failure_is_alerted_not_raised():
    alert = AsyncMock()
    with patch.object(jobs, "process_expired_picks", AsyncMock(side_effect=RuntimeError("db down"))), \
         patch.object(jobs, "async_session") as factory, \
         patch("market_oracle.core.services.alerts.alert_admin", alert):
        factory.return_value.__aenter__ = AsyncMock(return_value=AsyncMock())
        factory.return_value.__aexit__ = AsyncMock(return_value=False)
        assert await jobs.daily_outcome_processing() is None

    alert.assert_awaited_once_with("🚨 Outcome processing error: db down")


def test_job_name_from_argv_or_env(monkeypatch):
    monkeypatch.setenv("PICK_CYCLE_JOB", "Outcomes")
    assert run_pick_cycle._get_job_name(["prog"]) == "outcomes"
    assert run_pick_cycle._get_job_name(["prog", " PRICES "]) == "prices"


async def test_unknown_job_exit_code():
    assert await run_pick_cycle.main(["prog", "nope"]) == 2


async def test_job_exit_code_follows_result():
    with patch.dict(run_pick_cycle.JOBS, {"prices": AsyncMock(return_value=None)}), \
         patch.object(run_pick_cycle, "close_db", AsyncMock()):
        assert await run_pick_cycle.main(["prog", "prices"]) == 1

    with patch.dict(run_pick_cycle.JOBS, {"prices": AsyncMock(return_value={"updated": 3})}), \
         patch.object(run_pick_cycle, "close_db", AsyncMock()):
        assert await run_pick_cycle.main(["prog", "prices"]) == 0


async def test_calibration_job_returns_run_summary():
    summary = {"calibrated": [], "skipped": ["Claude"]}
    session = AsyncMock()
    with patch.object(jobs, "run_weekly_calibration", AsyncMock(return_value=summary)) as run, \
         patch.object(jobs, "async_session") as factory:
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)
        assert await jobs.weekly_model_calibration() == summary

    run.assert_awaited_once_with(session)
    assert run_pick_cycle.JOBS["calibrate"] is jobs.weekly_model_calibration

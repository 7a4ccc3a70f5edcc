from unittest.mock import AsyncMock, patch

from market_oracle.core.services.market_data import (
    analyst_consensus, build_technicals, get_stock_intelligence, macd_trend, market_cap_risk,
    moving_average_signals, rsi_signal, sentiment_label, summarize_recommendations,
)


def test_rsi_signal():
    assert rsi_signal(25) == "OVERSOLD"
    assert rsi_signal(75) == "OVERBOUGHT"
    assert rsi_signal(50) == "NEUTRAL"
    assert rsi_signal(None) == "NEUTRAL"


def test_macd_trend():
    assert macd_trend(0.4) == "BULLISH"
    assert macd_trend(-0.4) == "BEARISH"
    assert macd_trend(None) == "NEUTRAL"


def test_moving_average_signals_golden_cross():
    signals = moving_average_signals(210, 200, 180)
    assert signals["price_vs_sma50"] == "ABOVE"
    assert signals["golden_cross"] is True
    assert signals["death_cross"] is False


def test_market_cap_risk():
    assert market_cap_risk(None) == 50
    assert market_cap_risk(50e9) == 20
    assert market_cap_risk(5e9) == 40
    assert market_cap_risk(5e8) == 70


def test_sentiment_label():
    assert sentiment_label(0.5) == "BULLISH"
    assert sentiment_label(-0.5) == "BEARISH"
    assert sentiment_label(0.1) == "NEUTRAL"


def test_analyst_consensus_bands():
    assert analyst_consensus(4.6) == "STRONG_BUY"
    assert analyst_consensus(3.5) == "BUY"
    assert analyst_consensus(2.5) == "HOLD"
    assert analyst_consensus(1.5) == "SELL"
    assert analyst_consensus(1.0) == "STRONG_SELL"


def test_summarize_recommendations():
    summary = summarize_recommendations({"strongBuy": 10, "buy": 10, "hold": 0, "sell": 0, "strongSell": 0})
    assert summary["score"] == 4.5
    assert summary["consensus"] == "STRONG_BUY"
    assert summary["total_analysts"] == 20

    assert summarize_recommendations({}) is None


def test_build_technicals_without_data():
    t = build_technicals(None, 100.0)
    assert t["rsi"] is None
    assert t["macd"] is None
    assert t["moving_averages"]["golden_cross"] is False


async def test_stock_intelligence_none_without_quote_or_technicals():
    base = "market_oracle.core.services.market_data"
    with patch(f"{base}.get_quote", AsyncMock(return_value=None)), \
         patch(f"{base}.get_technicals", AsyncMock(return_value=None)), \
         patch(f"{base}.get_company_profile", AsyncMock(return_value=None)), \
         patch(f"{base}.get_analyst_recommendations", AsyncMock(return_value=None)), \
         patch(f"{base}.get_company_news", AsyncMock(return_value=[])), \
         patch(f"{base}.get_insider_summary", AsyncMock(return_value={"transactions": [], "summary": {}})), \
         patch(f"{base}.get_social_sentiment", AsyncMock(return_value={})):
        assert await get_stock_intelligence("zzzz") is None

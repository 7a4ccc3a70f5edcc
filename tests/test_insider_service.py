from datetime import date
from unittest.mock import AsyncMock, patch

from market_oracle.core.services.insider_service import (
    detect_clusters, get_insider_activity, insider_title, normalize_transaction,
    significance_for, signal_for, transaction_type,
)


def _tx(symbol, day, tx_type, value, name="Jane Doe"):
    return {
        "symbol": symbol,
        "transaction_date": day,
        "filing_date": day,
        "transaction_type": tx_type,
        "total_value": value,
        "insider_name": name,
    }


def test_transaction_type_codes():
    assert transaction_type("P") == "buy"
    assert transaction_type("S") == "sell"
    assert transaction_type("M") == "exercise"
    assert transaction_type("G") == "gift"
    assert transaction_type("X", -10) == "sell"
    assert transaction_type(None, 10) == "buy"


def test_significance_and_signal():
    assert significance_for(2_000_000) == "high"
    assert significance_for(200_000) == "medium"
    assert significance_for(100_000) == "low"
    assert signal_for("buy", 60_000) == "bullish"
    assert signal_for("sell", 60_000) == "neutral"
    assert signal_for("sell", 150_000) == "bearish"


def test_insider_title():
    assert insider_title("Tim Cook, Chief Executive Officer") == "CEO"
    assert insider_title("Board Director") == "Director"
    assert insider_title(None) == "Insider"


def test_normalize_transaction():
    tx = normalize_transaction(
        {"name": "A CFO", "change": -1000, "transactionPrice": 150, "transactionCode": "S",
         "filingDate": "2026-10-01", "transactionDate": "2026-09-30", "share": 5000},
        "AAPL", 0,
    )
    assert tx["shares"] == 1000
    assert tx["total_value"] == 150_000
    assert tx["transaction_type"] == "sell"
    assert tx["significance"] == "medium"
    assert tx["signal"] == "bearish"
    assert tx["insider_title"] == "CFO"


def test_detect_clusters_needs_three_recent():
    today = date(2026, 10, 19)
    txs = [
        _tx("AAPL", "2026-10-01", "buy", 400_000, "A"),
        _tx("AAPL", "2026-10-05", "buy", 300_000, "B"),
        _tx("AAPL", "2026-10-10", "sell", 100_000, "C"),
        _tx("MSFT", "2026-10-01", "buy", 1_000_000),
        _tx("MSFT", "2026-10-02", "buy", 1_000_000),
        _tx("MSFT", "2026-07-01", "buy", 1_000_000),
    ]

    clusters = detect_clusters(txs, today=today)

    assert [c["symbol"] for c in clusters] == ["AAPL"]
    cluster = clusters[0]
    assert cluster["transaction_count"] == 3
    assert cluster["net_activity"] == 600_000
    assert cluster["signal"] == "bullish"
    assert cluster["significance"] == "low"
    assert cluster["date_range"] == {"start": "2026-10-01", "end": "2026-10-10"}


async def test_get_insider_activity_filters_by_type():
    rows = {"data": [
        {"name": "CEO Person", "change": 1000, "transactionPrice": 100, "transactionCode": "P", "filingDate": "2026-10-02"},
        {"name": "Someone", "change": -500, "transactionPrice": 100, "transactionCode": "S", "filingDate": "2026-10-01"},
    ]}
    with patch("market_oracle.core.services.insider_service.fetch_finnhub", AsyncMock(return_value=rows)):
        data = await get_insider_activity("aapl", tx_type="buy")

    assert data["symbol"] == "AAPL"
    assert [tx["transaction_type"] for tx in data["transactions"]] == ["buy"]
    assert data["stats"]["buys"] == 1
    assert data["data_sources"] == ["Finnhub"]

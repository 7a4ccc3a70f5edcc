"""
Insider Service
Finnhub insider transactions with significance, signals and cluster detection
"""

import logging
import re
from collections import defaultdict
from datetime import datetime, date
from typing import Optional

from market_oracle.core.services.market_data import fetch_finnhub

logger = logging.getLogger(__name__)

TITLE_KEYWORDS = (
    (("ceo", "chief executive"), "CEO"),
    (("cfo", "chief financial"), "CFO"),
    (("coo", "chief operating"), "COO"),
    (("cto", "chief technology"), "CTO"),
    (("president",), "President"),
    (("director",), "Director"),
    (("vp", "vice president"), "VP"),
)

CLUSTER_WINDOW_DAYS = 30
CLUSTER_MIN_TRANSACTIONS = 3


def transaction_type(code: Optional[str], change: float = 0) -> str:
    if code == "P":
        return "buy"
    if code == "S":
        return "sell"
    if code in ("M", "A"):
        return "exercise"
    if code == "G":
        return "gift"
    return "sell" if change < 0 else "buy"


def significance_for(total_value: float) -> str:
    if total_value > 1_000_000:
        return "high"
    if total_value > 100_000:
        return "medium"
    return "low"


def signal_for(tx_type: str, total_value: float) -> str:
    if tx_type == "buy" and total_value > 50_000:
        return "bullish"
    if tx_type == "sell" and total_value > 100_000:
        return "bearish"
    return "neutral"


def insider_title(name: Optional[str]) -> str:
    # whole words only: "director" must not read as "cto"
    lowered = (name or "").lower()
    for keywords, title in TITLE_KEYWORDS:
        if any(re.search(rf"\b{k}\b", lowered) for k in keywords):
            return title
    return "Insider"


def normalize_transaction(raw: dict, symbol: str, idx: int) -> dict:
    change = raw.get("change") or 0
    shares = abs(change)
    price = raw.get("transactionPrice") or 0
    total = shares * price
    tx_type = transaction_type(raw.get("transactionCode"), change)

    return {
        "id": f"finnhub-{symbol}-{idx}-{raw.get('filingDate')}",
        "symbol": raw.get("symbol") or symbol,
        "filing_date": raw.get("filingDate"),
        "transaction_date": raw.get("transactionDate"),
        "insider_name": raw.get("name") or "Unknown",
        "insider_title": insider_title(raw.get("name")),
        "transaction_type": tx_type,
        "shares": shares,
        "price_per_share": price,
        "total_value": total,
        "shares_owned": raw.get("share") or 0,
        "ownership_change": change,
        "source": "Finnhub",
        "significance": significance_for(total),
        "signal": signal_for(tx_type, total),
    }


def _parse_date(value: Optional[str]) -> Optional[date]:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date() if value else None
    except ValueError:
        return None


def detect_clusters(transactions: list[dict], today: Optional[date] = None) -> list[dict]:
    """
    Symbols with 3+ insider transactions in the last 30 days
    """
    today = today or datetime.utcnow().date()
    by_symbol: dict[str, list[tuple[date, dict]]] = defaultdict(list)

    for tx in transactions:
        d = _parse_date(tx.get("transaction_date")) or _parse_date(tx.get("filing_date"))
        if d and (today - d).days <= CLUSTER_WINDOW_DAYS:
            by_symbol[tx["symbol"]].append((d, tx))

    clusters = []
    for symbol, recent in by_symbol.items():
        if len(recent) < CLUSTER_MIN_TRANSACTIONS:
            continue

        bought = sum(tx["total_value"] for _, tx in recent if tx["transaction_type"] == "buy")
        sold = sum(tx["total_value"] for _, tx in recent if tx["transaction_type"] == "sell")
        net = bought - sold
        dates = [d for d, _ in recent]

        clusters.append({
            "symbol": symbol,
            "transaction_count": len(recent),
            "total_bought": bought,
            "total_sold": sold,
            "net_activity": net,
            "insiders": sorted({tx["insider_name"] for _, tx in recent}),
            "date_range": {"start": min(dates).isoformat(), "end": max(dates).isoformat()},
            "signal": "bullish" if net > 500_000 else "bearish" if net < -500_000 else "neutral",
            "significance": "high" if abs(net) > 5_000_000 else "medium" if abs(net) > 1_000_000 else "low",
        })

    order = {"high": 0, "medium": 1, "low": 2}
    clusters.sort(key=lambda c: (order[c["significance"]], -abs(c["net_activity"])))
    return clusters


def insider_stats(transactions: list[dict]) -> dict:
    def of(kind):
        return [tx for tx in transactions if tx["transaction_type"] == kind]

    return {
        "total_transactions": len(transactions),
        "buys": len(of("buy")),
        "sells": len(of("sell")),
        "exercises": len(of("exercise")),
        "total_buy_value": sum(tx["total_value"] for tx in of("buy")),
        "total_sell_value": sum(tx["total_value"] for tx in of("sell")),
        "high_significance": sum(1 for tx in transactions if tx["significance"] == "high"),
        "bullish_signals": sum(1 for tx in transactions if tx["signal"] == "bullish"),
        "bearish_signals": sum(1 for tx in transactions if tx["signal"] == "bearish"),
    }


def generate_insight(stats: dict, clusters: list[dict]) -> str:
    parts = []
    traded = stats["buys"] + stats["sells"]
    ratio = stats["buys"] / traded if traded else 0.5

    if ratio > 0.6:
        parts.append("Insiders are buying more than selling, which historically correlates with positive stock performance.")
    elif ratio < 0.4:
        parts.append("Insider selling outpaces buying. While not always negative, this warrants attention.")
    else:
        parts.append("Insider activity is balanced between buying and selling.")

    bullish = [c["symbol"] for c in clusters if c["signal"] == "bullish"]
    if bullish:
        parts.append(f"Notable cluster buying detected in {', '.join(bullish)}.")

    if stats["high_significance"]:
        parts.append(f"{stats['high_significance']} high-value transactions detected (>$1M each).")

    return " ".join(parts)


async def get_insider_activity(
    symbol: str,
    tx_type: str = "all",
    significance: Optional[str] = None,
    limit: int = 50,
) -> dict:
    symbol = symbol.strip().upper()
    data = await fetch_finnhub("/stock/insider-transactions", symbol=symbol)
    rows = (data or {}).get("data") or []

    transactions = [normalize_transaction(r, symbol, i) for i, r in enumerate(rows)]
    if tx_type != "all":
        transactions = [tx for tx in transactions if tx["transaction_type"] == tx_type]
    if significance:
        transactions = [tx for tx in transactions if tx["significance"] == significance]

    transactions.sort(key=lambda tx: tx["filing_date"] or "", reverse=True)
    transactions = transactions[:max(1, limit)]

    clusters = detect_clusters(transactions)
    stats = insider_stats(transactions)

    return {
        "symbol": symbol,
        "stats": stats,
        "clusters": clusters[:10],
        "notable": [
            tx for tx in transactions
            if tx["significance"] == "high" or tx["total_value"] > 500_000
        ][:10],
        "transactions": transactions,
        "insight": generate_insight(stats, clusters),
        "data_sources": ["Finnhub"],
    }

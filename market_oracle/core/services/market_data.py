"""
Market Data
Finnhub and Alpha Vantage fetchers reshaped into one stock intelligence view
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

import httpx

from market_oracle.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

FINNHUB_API = "https://finnhub.io/api/v1"
ALPHA_VANTAGE_API = "https://www.alphavantage.co/query"


# === Fetch helpers ===

async def fetch_finnhub(endpoint: str, **params) -> Optional[dict | list]:
    """GET a Finnhub endpoint; None on any failure"""
    if not settings.finnhub_api_key:
        return None

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(
                f"{FINNHUB_API}{endpoint}",
                params={**params, "token": settings.finnhub_api_key},
            )
            if response.status_code != 200:
                return None
            return response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Finnhub %s failed: %s", endpoint, e)
        return None


async def fetch_alpha_vantage(function: str, symbol: str, **params) -> Optional[dict]:
    if not settings.alpha_vantage_api_key:
        return None

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(
                ALPHA_VANTAGE_API,
                params={
                    "function": function,
                    "symbol": symbol,
                    "apikey": settings.alpha_vantage_api_key,
                    **params,
                },
            )
            if response.status_code != 200:
                return None
            return response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Alpha Vantage %s failed for %s: %s", function, symbol, e)
        return None


def _latest_point(data: Optional[dict], key: str) -> Optional[dict]:
    """Most recent entry of an Alpha Vantage 'Technical Analysis: X' series"""
    series = (data or {}).get(f"Technical Analysis: {key}") or {}
    if not series:
        return None
    return series[max(series)]


def _float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# === Finnhub ===

async def get_quote(symbol: str) -> Optional[dict]:
    q = await fetch_finnhub("/quote", symbol=symbol)
    if not q or not q.get("c"):
        return None
    return {
        "current": q["c"],
        "change": q.get("d"),
        "change_percent": q.get("dp"),
        "high": q.get("h"),
        "low": q.get("l"),
        "open": q.get("o"),
        "previous_close": q.get("pc"),
    }


async def get_company_profile(symbol: str) -> Optional[dict]:
    p = await fetch_finnhub("/stock/profile2", symbol=symbol)
    if not p or not p.get("name"):
        return None
    return {
        "name": p["name"],
        "industry": p.get("finnhubIndustry"),
        # Finnhub reports millions
        "market_cap": (p.get("marketCapitalization") or 0) * 1_000_000,
        "logo": p.get("logo"),
        "website": p.get("weburl"),
        "exchange": p.get("exchange"),
        "country": p.get("country"),
        "ipo": p.get("ipo"),
        "shares_outstanding": (p.get("shareOutstanding") or 0) * 1_000_000,
    }


def summarize_insider_codes(transactions: list[dict]) -> dict:
    buys = sum(1 for t in transactions if t["type"] == "BUY")
    sells = sum(1 for t in transactions if t["type"] == "SELL")
    return {
        "signal": "BULLISH" if buys > sells else "BEARISH" if sells > buys else "NEUTRAL",
        "net_buying": buys > sells,
    }


async def get_insider_summary(symbol: str) -> dict:
    data = await fetch_finnhub("/stock/insider-transactions", symbol=symbol)
    rows = (data or {}).get("data") or []

    transactions = [
        {
            "name": t.get("name"),
            "shares": abs(t.get("share") or 0),
            "type": {"P": "BUY", "S": "SELL"}.get(t.get("transactionCode"), "OTHER"),
            "date": t.get("transactionDate"),
            "price": t.get("transactionPrice"),
        }
        for t in rows[:10]
    ]
    return {"transactions": transactions, "summary": summarize_insider_codes(transactions)}


def sentiment_label(score: float) -> str:
    if score > 0.2:
        return "BULLISH"
    if score < -0.2:
        return "BEARISH"
    return "NEUTRAL"


async def get_social_sentiment(symbol: str) -> dict:
    data = await fetch_finnhub("/stock/social-sentiment", symbol=symbol) or {}

    def last(source: str) -> dict:
        points = data.get(source) or []
        return points[-1] if points else {}

    reddit, twitter = last("reddit"), last("twitter")
    reddit_score, twitter_score = reddit.get("score") or 0, twitter.get("score") or 0
    overall = (reddit_score + twitter_score) / 2
    mentions = (reddit.get("mention") or 0) + (twitter.get("mention") or 0)

    return {
        "overall_score": overall,
        "overall_sentiment": sentiment_label(overall),
        "reddit": {"score": reddit_score, "mentions": reddit.get("mention") or 0},
        "twitter": {"score": twitter_score, "mentions": twitter.get("mention") or 0},
        "trending": mentions > 100,
    }


def analyst_consensus(score: float) -> str:
    if score >= 4.5:
        return "STRONG_BUY"
    if score >= 3.5:
        return "BUY"
    if score >= 2.5:
        return "HOLD"
    if score >= 1.5:
        return "SELL"
    return "STRONG_SELL"


def summarize_recommendations(latest: dict) -> Optional[dict]:
    """Weighted 5..1 score over the latest recommendation period"""
    counts = {k: latest.get(k) or 0 for k in ("strongBuy", "buy", "hold", "sell", "strongSell")}
    total = sum(counts.values())
    if total == 0:
        return None

    score = (
        counts["strongBuy"] * 5 + counts["buy"] * 4 + counts["hold"] * 3
        + counts["sell"] * 2 + counts["strongSell"] * 1
    ) / total

    return {
        "consensus": analyst_consensus(score),
        "score": round(score, 1),
        "total_analysts": total,
        "distribution": {
            "strong_buy": counts["strongBuy"],
            "buy": counts["buy"],
            "hold": counts["hold"],
            "sell": counts["sell"],
            "strong_sell": counts["strongSell"],
        },
    }


async def get_analyst_recommendations(symbol: str) -> Optional[dict]:
    data = await fetch_finnhub("/stock/recommendation", symbol=symbol)
    if not data:
        return None
    return summarize_recommendations(data[0])


async def get_company_news(symbol: str, days: int = 7) -> list[dict]:
    today = datetime.utcnow().date()
    data = await fetch_finnhub(
        "/company-news",
        symbol=symbol,
        **{"from": (today - timedelta(days=days)).isoformat(), "to": today.isoformat()},
    )
    return [
        {
            "headline": n.get("headline"),
            "summary": n.get("summary"),
            "source": n.get("source"),
            "url": n.get("url"),
            "datetime": datetime.utcfromtimestamp(n.get("datetime") or 0).isoformat(),
        }
        for n in (data or [])[:10]
    ]


# === Alpha Vantage technicals ===

async def get_technicals(symbol: str) -> Optional[dict]:
    rsi, macd, sma50, sma200, bbands = await asyncio.gather(
        fetch_alpha_vantage("RSI", symbol, interval="daily", time_period=14, series_type="close"),
        fetch_alpha_vantage("MACD", symbol, interval="daily", series_type="close"),
        fetch_alpha_vantage("SMA", symbol, interval="daily", time_period=50, series_type="close"),
        fetch_alpha_vantage("SMA", symbol, interval="daily", time_period=200, series_type="close"),
        fetch_alpha_vantage("BBANDS", symbol, interval="daily", time_period=20, series_type="close"),
    )

    rsi_point = _latest_point(rsi, "RSI")
    macd_point = _latest_point(macd, "MACD")
    sma50_point = _latest_point(sma50, "SMA")
    sma200_point = _latest_point(sma200, "SMA")
    bb_point = _latest_point(bbands, "BBANDS")

    if not any((rsi_point, macd_point, sma50_point, sma200_point, bb_point)):
        return None

    return {
        "rsi": _float((rsi_point or {}).get("RSI")),
        "macd": {
            "value": _float(macd_point.get("MACD")),
            "signal": _float(macd_point.get("MACD_Signal")),
            "histogram": _float(macd_point.get("MACD_Hist")),
        } if macd_point else None,
        "sma50": _float((sma50_point or {}).get("SMA")),
        "sma200": _float((sma200_point or {}).get("SMA")),
        "bollinger_bands": {
            "upper": _float(bb_point.get("Real Upper Band")),
            "middle": _float(bb_point.get("Real Middle Band")),
            "lower": _float(bb_point.get("Real Lower Band")),
        } if bb_point else None,
    }


# === Labels ===

def rsi_signal(rsi: Optional[float]) -> str:
    if rsi is None:
        return "NEUTRAL"
    if rsi < 30:
        return "OVERSOLD"
    if rsi > 70:
        return "OVERBOUGHT"
    return "NEUTRAL"


def macd_trend(histogram: Optional[float]) -> str:
    if not histogram:
        return "NEUTRAL"
    return "BULLISH" if histogram > 0 else "BEARISH"


def moving_average_signals(price: Optional[float], sma50: Optional[float], sma200: Optional[float]) -> dict:
    p, s50, s200 = price or 0, sma50 or 0, sma200 or 0
    return {
        "sma50": sma50,
        "sma200": sma200,
        "price_vs_sma50": "ABOVE" if p > s50 else "BELOW",
        "price_vs_sma200": "ABOVE" if p > s200 else "BELOW",
        "golden_cross": s50 > s200,
        "death_cross": s50 < s200,
    }


def market_cap_risk(market_cap: Optional[float]) -> int:
    """Lower is safer"""
    if market_cap is None:
        return 50
    if market_cap > 10e9:
        return 20
    if market_cap > 2e9:
        return 40
    return 70


def build_technicals(technicals: Optional[dict], price: Optional[float]) -> dict:
    t = technicals or {}
    macd = t.get("macd")
    return {
        "rsi": t.get("rsi"),
        "rsi_signal": rsi_signal(t.get("rsi")),
        "macd": {**macd, "trend": macd_trend(macd.get("histogram"))} if macd else None,
        "moving_averages": moving_average_signals(
            price if technicals else None, t.get("sma50"), t.get("sma200")
        ),
        "bollinger_bands": t.get("bollinger_bands"),
    }


async def get_stock_intelligence(symbol: str) -> Optional[dict]:
    """
    Everything known about one symbol, fetched concurrently.
    None when neither a quote nor technicals exist.
    """
    symbol = symbol.strip().upper()

    quote, profile, insiders, social, analysts, news, technicals = await asyncio.gather(
        get_quote(symbol),
        get_company_profile(symbol),
        get_insider_summary(symbol),
        get_social_sentiment(symbol),
        get_analyst_recommendations(symbol),
        get_company_news(symbol),
        get_technicals(symbol),
    )

    if not quote and not technicals:
        return None

    price = quote["current"] if quote else None
    sources = (["Alpha Vantage"] if technicals else []) + ["Finnhub"]

    return {
        "symbol": symbol,
        "profile": profile,
        "price": quote,
        "technicals": build_technicals(technicals, price),
        "sentiment": {
            "overall": social["overall_sentiment"],
            "score": social["overall_score"],
            "news": {"count": len(news)},
            "social": {
                "reddit": social["reddit"]["score"],
                "twitter": social["twitter"]["score"],
                "trending": social["trending"],
            },
            "insiders": {
                "signal": insiders["summary"]["signal"],
                "net_buying": insiders["summary"]["net_buying"],
                "recent_transactions": len(insiders["transactions"]),
            },
            "analysts": analysts,
        },
        "risk": {
            "score": 50,
            "level": "MODERATE",
            "factors": {
                "volatility": 50,
                "liquidity": 50,
                "market_cap": market_cap_risk(profile["market_cap"] if profile else None),
                "news_volatility": 50,
                "technical_risk": 50,
            },
        },
        "news": [{**n, "sentiment": "neutral"} for n in news],
        "insider_transactions": insiders["transactions"],
        "data_quality": {
            "score": 85 if technicals else 60,
            "sources": sources,
            "last_updated": datetime.utcnow().isoformat(),
        },
    }

"""
Price Service
Current prices from Twelve Data, Alpha Vantage and CoinGecko
"""

import asyncio
import logging
from typing import Optional

import httpx

from market_oracle.core.config import get_settings, CRYPTO_MAP

settings = get_settings()
logger = logging.getLogger(__name__)

TWELVE_DATA_API = "https://api.twelvedata.com"
ALPHA_VANTAGE_API = "https://www.alphavantage.co/query"
COINGECKO_API = "https://api.coingecko.com/api/v3"

# Twelve Data free tier allows ~8 requests per minute
TWELVE_DATA_DELAY_SECONDS = 0.3


async def get_stock_price(client: httpx.AsyncClient, ticker: str) -> Optional[float]:
    """Single stock price from Twelve Data"""
    try:
        response = await client.get(
            f"{TWELVE_DATA_API}/price",
            params={"symbol": ticker, "apikey": settings.twelve_data_api_key},
        )
        if response.status_code != 200:
            return None

        data = response.json()
        # Twelve Data reports errors with a 200 and a "code" field
        if data.get("code") or not data.get("price"):
            return None
        return float(data["price"])
    except (httpx.HTTPError, ValueError, TypeError) as e:
        logger.warning("Price fetch failed for %s: %s", ticker, e)
        return None


async def get_stock_prices(tickers: list[str]) -> dict[str, float]:
    """
    Prices for several stock tickers, one call each.
    Tickers without a price are simply missing from the result.
    """
    prices: dict[str, float] = {}
    if not tickers:
        return prices

    async with httpx.AsyncClient(timeout=10.0) as client:
        for ticker in tickers:
            price = await get_stock_price(client, ticker)
            if price and price > 0:
                prices[ticker.upper()] = price
            await asyncio.sleep(TWELVE_DATA_DELAY_SECONDS)

    return prices


async def get_crypto_prices(tickers: list[str]) -> dict[str, float]:
    """
    USD prices for crypto tickers in a single CoinGecko call
    """
    prices: dict[str, float] = {}

    coin_ids = [CRYPTO_MAP[t.upper()] for t in tickers if t.upper() in CRYPTO_MAP]
    if not coin_ids:
        return prices

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(
                f"{COINGECKO_API}/simple/price",
                params={"ids": ",".join(coin_ids), "vs_currencies": "usd"},
            )

            if response.status_code != 200:
                logger.warning("CoinGecko error: %s", response.status_code)
                return prices

            data = response.json()
            for ticker in tickers:
                coin_id = CRYPTO_MAP.get(ticker.upper())
                usd = (data.get(coin_id) or {}).get("usd") if coin_id else None
                if usd:
                    prices[ticker.upper()] = float(usd)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Crypto price fetch error: %s", e)

    return prices


async def get_quote_price(symbol: str) -> Optional[float]:
    """
    Latest price from Alpha Vantage GLOBAL_QUOTE
    """
    if not settings.alpha_vantage_api_key:
        return None

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(
                ALPHA_VANTAGE_API,
                params={
                    "function": "GLOBAL_QUOTE",
                    "symbol": symbol,
                    "apikey": settings.alpha_vantage_api_key,
                },
            )

            if response.status_code != 200:
                return None

            quote = response.json().get("Global Quote") or {}
            raw = quote.get("05. price")
            return float(raw) if raw else None
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Error fetching price for %s: %s", symbol, e)
        return None


async def get_current_price(ticker: str, category: str = "regular") -> Optional[float]:
    """
    Current price for a pick's ticker, routed by category
    """
    t = (ticker or "").strip().upper()
    if not t:
        return None

    if category == "crypto":
        prices = await get_crypto_prices([t])
        return prices.get(t)

    price = await get_quote_price(t)
    if price:
        return price

    async with httpx.AsyncClient(timeout=10.0) as client:
        return await get_stock_price(client, t)

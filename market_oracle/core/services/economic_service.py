"""
Economic Service
FRED indicators, impact labels and an overall market outlook
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx

from market_oracle.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

FRED_API = "https://api.stlouisfed.org/fred"


@dataclass(frozen=True)
class Indicator:
    id: str
    name: str
    category: str
    impact_logic: str  # direct | inverse | mixed
    description: str


INDICATORS: tuple[Indicator, ...] = (
    Indicator("FEDFUNDS", "Federal Funds Rate", "Interest Rates", "inverse",
              "The interest rate at which banks lend to each other overnight. Key Fed policy tool."),
    Indicator("DGS10", "10-Year Treasury", "Interest Rates", "inverse",
              "10-year Treasury bond yield. Benchmark for mortgage rates and long-term borrowing."),
    Indicator("DGS2", "2-Year Treasury", "Interest Rates", "inverse",
              "2-year Treasury yield. Sensitive to Fed policy expectations."),
    Indicator("T10Y2Y", "Yield Curve (10Y-2Y)", "Interest Rates", "direct",
              "Spread between 10-year and 2-year Treasury. Negative = inverted = recession warning."),
    Indicator("MORTGAGE30US", "30-Year Mortgage Rate", "Housing", "inverse",
              "Average 30-year fixed mortgage rate. Impacts housing affordability."),
    Indicator("CPIAUCSL", "Consumer Price Index", "Inflation", "inverse",
              "Consumer Price Index. Primary measure of inflation for consumers."),
    Indicator("PCEPI", "PCE Price Index", "Inflation", "inverse",
              "Personal Consumption Expenditures Price Index. The Fed's preferred inflation gauge."),
    Indicator("UNRATE", "Unemployment Rate", "Employment", "inverse",
              "Percentage of labor force that is unemployed and actively seeking work."),
    Indicator("PAYEMS", "Nonfarm Payrolls", "Employment", "direct",
              "Total nonfarm jobs added. Key measure of economic health."),
    Indicator("ICSA", "Initial Jobless Claims", "Employment", "inverse",
              "Weekly new unemployment insurance claims. Leading indicator of labor market."),
    Indicator("GDP", "Real GDP", "Growth", "direct",
              "Total economic output of the United States."),
    Indicator("GDPC1", "Real GDP Growth Rate", "Growth", "direct",
              "Real GDP adjusted for inflation. Measures actual economic growth."),
    Indicator("RSXFS", "Retail Sales", "Consumer", "direct",
              "Monthly retail sales excluding food services. Consumer spending indicator."),
    Indicator("UMCSENT", "Consumer Sentiment", "Consumer", "direct",
              "University of Michigan Consumer Sentiment Index. Consumer confidence measure."),
    Indicator("INDPRO", "Industrial Production", "Manufacturing", "direct",
              "Output of manufacturing, mining, and utilities sectors."),
    Indicator("HOUST", "Housing Starts", "Housing", "direct",
              "Number of new residential construction projects started."),
    Indicator("DTWEXBGS", "US Dollar Index", "Currency", "mixed",
              "Trade-weighted US dollar against major currencies."),
    Indicator("VIXCLS", "VIX Volatility Index", "Volatility", "inverse",
              "CBOE Volatility Index. Measures expected market volatility (fear gauge)."),
    Indicator("M2SL", "M2 Money Supply", "Monetary", "direct",
              "M2 money supply including cash, checking, and savings deposits."),
    Indicator("WALCL", "Fed Balance Sheet", "Monetary", "direct",
              "Total assets held by the Federal Reserve. Measures QE/QT."),
)


def select_indicators(category: Optional[str] = None, indicator_id: Optional[str] = None) -> list[Indicator]:
    """id wins over category when both are given"""
    if indicator_id:
        return [i for i in INDICATORS if i.id == indicator_id.upper()]
    if category:
        return [i for i in INDICATORS if i.category.lower() == category.lower()]
    return list(INDICATORS)


async def fetch_series(series_id: str, limit: int = 10) -> list[dict]:
    """Latest observations, newest first; [] on failure"""
    if not settings.fred_api_key:
        return []

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(
                f"{FRED_API}/series/observations",
                params={
                    "series_id": series_id,
                    "api_key": settings.fred_api_key,
                    "file_type": "json",
                    "sort_order": "desc",
                    "limit": limit,
                },
            )
            if response.status_code != 200:
                logger.warning("FRED API error for %s: %s", series_id, response.status_code)
                return []
            return response.json().get("observations") or []
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Error fetching FRED series %s: %s", series_id, e)
        return []


def determine_impact(change: Optional[float], impact_logic: str) -> str:
    if change is None or abs(change) < 0.01:
        return "neutral"
    if impact_logic == "direct":
        return "bullish" if change > 0 else "bearish"
    if impact_logic == "inverse":
        return "bearish" if change > 0 else "bullish"
    return "neutral"


def trend_for(change: float) -> str:
    if change > 0.001:
        return "up"
    if change < -0.001:
        return "down"
    return "stable"


def build_indicator(indicator: Indicator, observations: list[dict]) -> Optional[dict]:
    # FRED marks missing values with "."
    valid = [o for o in observations if o.get("value") not in (None, ".")]
    if len(valid) < 2:
        return None

    current, previous = float(valid[0]["value"]), float(valid[1]["value"])
    change = current - previous
    change_pct = change / previous * 100 if previous != 0 else 0.0

    return {
        "id": indicator.id,
        "name": indicator.name,
        "description": indicator.description,
        "value": current,
        "previous_value": previous,
        "change": round(change, 3),
        "change_percent": round(change_pct, 2),
        "date": valid[0]["date"],
        "previous_date": valid[1]["date"],
        "trend": trend_for(change),
        "impact": determine_impact(change, indicator.impact_logic),
        "category": indicator.category,
    }


def outlook(indicators: list[dict]) -> dict:
    bullish = sum(1 for i in indicators if i["impact"] == "bullish")
    bearish = sum(1 for i in indicators if i["impact"] == "bearish")

    label, score = "neutral", 50
    if bullish + bearish > 0:
        score = round(bullish / (bullish + bearish) * 100)
        if score >= 60:
            label = "bullish"
        elif score <= 40:
            label = "bearish"

    return {
        "outlook": label,
        "outlook_score": score,
        "bullish_indicators": bullish,
        "bearish_indicators": bearish,
        "neutral_indicators": len(indicators) - bullish - bearish,
        "total_indicators": len(indicators),
    }


def highlights(indicators: list[dict]) -> list[dict]:
    by_id = {i["id"]: i for i in indicators}
    out = []

    fed = by_id.get("FEDFUNDS")
    if fed:
        out.append({
            "title": "Federal Funds Rate",
            "value": f"{fed['value']:.2f}%",
            "insight": (
                "Rate hike - tightening monetary policy" if fed["change"] > 0
                else "Rate cut - easing monetary policy" if fed["change"] < 0
                else "Rates unchanged"
            ),
            "impact": fed["impact"],
        })

    cpi = by_id.get("CPIAUCSL")
    if cpi and cpi["change_percent"]:
        pct = cpi["change_percent"]
        out.append({
            "title": "Inflation (CPI)",
            "value": f"{pct:.1f}%",
            "insight": (
                "Above Fed target - hawkish pressure" if pct > 3
                else "Below target - dovish potential" if pct < 2
                else "Near Fed 2% target"
            ),
            "impact": cpi["impact"],
        })

    unemployment = by_id.get("UNRATE")
    if unemployment:
        v = unemployment["value"]
        out.append({
            "title": "Unemployment",
            "value": f"{v:.1f}%",
            "insight": "Tight labor market" if v < 4 else "Elevated unemployment" if v > 5 else "Healthy employment",
            "impact": unemployment["impact"],
        })

    curve = by_id.get("T10Y2Y")
    if curve:
        inverted = curve["value"] < 0
        out.append({
            "title": "Yield Curve",
            "value": f"{curve['value']:.2f}%",
            "insight": "INVERTED - Recession signal" if inverted else "Normal yield curve",
            "impact": "bearish" if inverted else "bullish",
            "inverted": inverted,
        })

    return out


async def get_economic_data(category: Optional[str] = None, indicator_id: Optional[str] = None) -> dict:
    selected = select_indicators(category, indicator_id)
    series = await asyncio.gather(*(fetch_series(i.id) for i in selected))

    indicators = [
        built for built in (build_indicator(i, obs) for i, obs in zip(selected, series))
        if built is not None
    ]

    categories: dict[str, list[dict]] = {}
    for ind in indicators:
        categories.setdefault(ind["category"], []).append(ind)

    return {
        "summary": outlook(indicators),
        "highlights": highlights(indicators),
        "categories": [{"name": name, "indicators": items} for name, items in categories.items()],
        "indicators": indicators,
        "data_source": "Federal Reserve Economic Data (FRED)",
        "last_updated": indicators[0]["date"] if indicators else datetime.utcnow().date().isoformat(),
    }

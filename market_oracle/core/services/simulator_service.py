"""
Simulator Service
What-if market scenarios answered by an LLM as structured JSON
"""

import json
import logging
from typing import Optional

from market_oracle.core.services.llm_providers import call_provider, strip_code_fences, ProviderError

logger = logging.getLogger(__name__)

SIMULATOR_PROVIDER = "groq"
SIMULATOR_MODEL = "llama-3.1-70b-versatile"

SCENARIOS: dict[str, dict] = {
    "fed_rate_cut": {"name": "Fed Rate Cut", "description": "Fed cuts rates",
                     "prompt": "Federal Reserve announces 25bp rate cut"},
    "fed_rate_hike": {"name": "Fed Rate Hike", "description": "Fed raises rates",
                      "prompt": "Federal Reserve announces 25bp rate hike"},
    "recession": {"name": "Recession", "description": "Recession declared",
                  "prompt": "NBER declares US recession"},
    "inflation_spike": {"name": "Inflation Spike", "description": "CPI surge",
                        "prompt": "CPI at 5%, above 2.5% expected"},
    "tech_crash": {"name": "Tech Crash", "description": "Tech selloff",
                   "prompt": "Major tech stocks drop 20%"},
    "oil_shock": {"name": "Oil Shock", "description": "Oil spike",
                  "prompt": "Oil spikes to $150/barrel"},
    "ai_breakthrough": {"name": "AI Breakthrough", "description": "Major AI news",
                        "prompt": "Transformative AI breakthrough announced"},
}

SYSTEM_PROMPT = (
    'Market analyst. Respond JSON only: {"scenario":"<desc>","probability":<0-100>,'
    '"marketImpact":{"sp500":{"change":<pct>,"reasoning":"<s>"},"nasdaq":{"change":<pct>,"reasoning":"<s>"},'
    '"bonds":{"change":<pct>,"reasoning":"<s>"},"gold":{"change":<pct>,"reasoning":"<s>"}},'
    '"sectorImpacts":[{"sector":"<n>","impact":"positive|negative|neutral","magnitude":<1-10>}],'
    '"stockPicks":[{"symbol":"<t>","action":"buy|sell|hold","expectedMove":<pct>}],'
    '"timeline":"<dur>","confidence":<0-100>}'
)


def list_scenarios() -> list[dict]:
    return [{"id": sid, **s} for sid, s in SCENARIOS.items()]


def parse_simulation(text: str) -> Optional[dict]:
    try:
        result = json.loads(strip_code_fences(text))
    except (ValueError, TypeError):
        return None
    return result if isinstance(result, dict) else None


async def simulate(prompt: str) -> Optional[dict]:
    """
    One scenario simulation; None when the provider fails or the answer is not JSON.
    """
    try:
        text = await call_provider(
            SIMULATOR_PROVIDER,
            SIMULATOR_MODEL,
            f'Simulate: "{prompt}". Include 5 sectors and 5 stocks.',
            system=SYSTEM_PROMPT,
            max_tokens=1200,
            temperature=0.4,
        )
    except ProviderError as e:
        logger.warning("Simulation failed: %s", e)
        return None

    result = parse_simulation(text)
    if result is None:
        logger.warning("Simulation answer was not JSON")
    return result

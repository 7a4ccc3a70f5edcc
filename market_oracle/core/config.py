"""
Application Configuration
Central settings for the Market Oracle API and its jobs
"""

from datetime import date
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Main application settings"""

    # === Application ===
    debug: bool = Field(default=False, alias="DEBUG")
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")

    # === Database ===
    database_url: str = Field(..., alias="DATABASE_URL")

    # === Auth ===
    cron_secret: Optional[str] = Field(default=None, alias="CRON_SECRET")
    admin_secret: str = Field(default="change_me_in_production", alias="ADMIN_SECRET")

    # === LLM providers ===
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    perplexity_api_key: Optional[str] = Field(default=None, alias="PERPLEXITY_API_KEY")
    groq_api_key: Optional[str] = Field(default=None, alias="GROQ_API_KEY")

    # === Market data providers ===
    finnhub_api_key: Optional[str] = Field(default=None, alias="FINNHUB_API_KEY")
    alpha_vantage_api_key: Optional[str] = Field(default=None, alias="ALPHA_VANTAGE_API_KEY")
    twelve_data_api_key: str = Field(default="demo", alias="TWELVE_DATA_API_KEY")
    fred_api_key: Optional[str] = Field(default=None, alias="FRED_API_KEY")

    # === Admin alerts ===
    telegram_bot_token: Optional[str] = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    admin_telegram_chat_id: Optional[int] = Field(default=None, alias="ADMIN_TELEGRAM_CHAT_ID")

    # === Pick cycle ===
    picks_per_category: int = Field(default=5, alias="PICKS_PER_CATEGORY")
    pick_expiry_days: int = Field(default=7, alias="PICK_EXPIRY_DAYS")
    llm_max_tokens: int = Field(default=1000, alias="LLM_MAX_TOKENS")
    http_timeout_seconds: float = Field(default=30.0, alias="HTTP_TIMEOUT_SECONDS")

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    s = Settings()

    # secrets pasted with quotes or trailing whitespace still have to match headers
    if s.cron_secret:
        s.cron_secret = s.cron_secret.strip().strip('"').strip("'")
    if s.admin_secret:
        s.admin_secret = s.admin_secret.strip().strip('"').strip("'")

    return s

# Convenience singleton (cached)
settings = get_settings()


# Models competing in the weekly pick cycle: display name -> provider/model
AI_CONFIG = {
    "GPT-4": {"model": "gpt-4-turbo-preview", "provider": "openai"},
    "Claude": {"model": "claude-sonnet-4-20250514", "provider": "anthropic"},
    "Gemini": {"model": "gemini-2.0-flash-exp", "provider": "google"},
    "Perplexity": {"model": "sonar", "provider": "perplexity"},
    "Javari": {"model": "claude-sonnet-4-20250514", "provider": "anthropic"},
}

PICK_CATEGORIES = ("regular", "penny", "crypto")

# Ticker universe offered to the models per category
TICKERS = {
    "regular": ["AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "META", "TSLA", "JPM", "V", "UNH"],
    "penny": ["SNDL", "SOFI", "CLOV", "WISH", "HOOD", "RIVN", "LCID", "NIO", "PLTR"],
    "crypto": ["BTC", "ETH", "SOL", "XRP", "ADA", "DOGE", "AVAX", "LINK", "DOT", "MATIC"],
}

# Crypto ticker -> CoinGecko coin id
CRYPTO_MAP = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "XRP": "ripple",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "AVAX": "avalanche-2",
    "LINK": "chainlink",
    "DOT": "polkadot",
    "MATIC": "matic-network",
    "SHIB": "shiba-inu",
    "LTC": "litecoin",
    "UNI": "uniswap",
    "ATOM": "cosmos",
    "XLM": "stellar",
}

# Week numbers on picks count from this date
WEEK_EPOCH = date(2025, 1, 1)


def get_provider_api_key(provider: str) -> Optional[str]:
    """
    Return the API key for an LLM provider, None when unset or unknown.
    """
    p = (provider or "").strip().lower()

    if p == "openai":
        return settings.openai_api_key
    if p == "anthropic":
        return settings.anthropic_api_key
    if p == "google":
        return settings.gemini_api_key
    if p == "perplexity":
        return settings.perplexity_api_key
    if p == "groq":
        return settings.groq_api_key

    return None

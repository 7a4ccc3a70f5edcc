# market_oracle/core/services/alerts.py
import logging
from typing import Optional

from aiogram import Bot

from market_oracle.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

_bot: Optional[Bot] = None

# how many provider errors are quoted in a pick-cycle alert
MAX_QUOTED_ERRORS = 3


def _get_bot() -> Optional[Bot]:
    """Alert bot, None while token or admin chat is unset"""
    global _bot
    if not settings.telegram_bot_token or not settings.admin_telegram_chat_id:
        return None
    if _bot is None:
        _bot = Bot(token=settings.telegram_bot_token)
    return _bot


async def alert_admin(text: str):
    """Send a job alert to the admin chat"""
    bot = _get_bot()
    if not bot:
        return
    try:
        await bot.send_message(chat_id=settings.admin_telegram_chat_id, text=text)
    except Exception as e:
        logger.error("[ALERT FAILED] %s | Error: %s", text, e)


def pick_cycle_report(result: dict) -> Optional[str]:
    """Alert text for a finished generation run, None when every provider answered"""
    errors = result.get("errors") or []
    if not errors:
        return None

    lines = [
        f"⚠️ Pick generation finished with {len(errors)} errors",
        f"├ Picks: {result.get('total', 0)} ({result.get('prices_available', 0)} prices)",
    ]
    quoted = errors[:MAX_QUOTED_ERRORS]
    for i, err in enumerate(quoted):
        lines.append(f"{'└' if i == len(quoted) - 1 else '├'} {err}")
    return "\n".join(lines)


async def alert_job_failure(job: str, error: Exception):
    await alert_admin(f"🚨 {job} error: {error}")

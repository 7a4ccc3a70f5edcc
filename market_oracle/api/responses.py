# market_oracle/api/responses.py
from datetime import datetime


def ok(payload: dict | None = None, **extra) -> dict:
    """Success envelope: success flag, payload fields, timestamp"""
    return {
        "success": True,
        **(payload or {}),
        **extra,
        "timestamp": datetime.utcnow().isoformat(),
    }

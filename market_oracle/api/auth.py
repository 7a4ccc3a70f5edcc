# market_oracle/api/auth.py
from typing import Optional

from fastapi import HTTPException, Header

from market_oracle.core.config import get_settings
from market_oracle.core.services.credit_service import check_access, deduct_credits
from market_oracle.database.connection import async_session

settings = get_settings()


def require_cron_secret(authorization: str = Header(None)):
    """Require `Authorization: Bearer <CRON_SECRET>`"""
    if not settings.cron_secret or authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")
    return True


def require_admin(x_admin_secret: str = Header(None)):
    """Require admin secret in header"""
    if not x_admin_secret or x_admin_secret != settings.admin_secret:
        raise HTTPException(status_code=403, detail="Forbidden")
    return True


def require_user_id(x_user_id: str = Header(None)) -> str:
    """User id supplied by the upstream auth provider"""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


def optional_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    user_id = (x_user_id or "").strip()
    return user_id or None


async def enforce_feature(user_id: str, feature: str):
    """
    403 when the plan does not include the feature, 402 when credits do not cover it.
    Pay-per-use access is charged here.
    """
    async with async_session() as session:
        access = await check_access(session, user_id, feature)

        if not access.allowed:
            if access.insufficient_credits:
                raise HTTPException(status_code=402, detail="Insufficient credits")
            raise HTTPException(status_code=403, detail=access.reason or "Premium feature")

        if access.cost:
            if not await deduct_credits(session, user_id, feature):
                raise HTTPException(status_code=402, detail="Insufficient credits")
            await session.commit()


def require_feature(feature: str):
    """Dependency factory for premium-gated routes"""
    async def dependency(x_user_id: str = Header(None)) -> str:
        user_id = require_user_id(x_user_id)
        await enforce_feature(user_id, feature)
        return user_id

    return dependency

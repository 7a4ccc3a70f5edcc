# market_oracle/api/credits.py
from fastapi import APIRouter, Depends

from market_oracle.api.auth import require_user_id
from market_oracle.api.responses import ok
from market_oracle.core.services.credit_service import get_balance, get_transactions
from market_oracle.database.connection import async_session

router = APIRouter(prefix="/api/credits", tags=["credits"])


@router.get("/balance")
async def balance(limit: int = 20, user_id: str = Depends(require_user_id)):
    """Cached balance plus the latest ledger rows"""
    async with async_session() as session:
        current = await get_balance(session, user_id)
        transactions = await get_transactions(session, user_id, limit=min(max(limit, 1), 100))
    return ok(user_id=user_id, balance=current, transactions=transactions)

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import current_user_id, get_balance_ledger, storage_http_error
from app.db.errors import StorageError
from app.economy.balance.service import BalanceLedger

router = APIRouter(prefix="/api", tags=["balance"])


class BalanceResponse(BaseModel):
    balance: int


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    user_id: int = Depends(current_user_id),
    ledger: BalanceLedger = Depends(get_balance_ledger),
) -> BalanceResponse:
    try:
        quantity = await ledger.read(user_id)
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    return BalanceResponse(balance=quantity)

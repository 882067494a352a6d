"""
Token API Routes

Balance checks, debits and history for the authenticated user.
Business outcomes (insufficient balance, rejected debit) come back as
result objects with status 200.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.config.settings import get_settings
from app.domain.ledger import (
    TokenBalance,
    TokenCheckRequest,
    TokenCheckResponse,
    TokenDeductRequest,
    TokenDeductResponse,
    TokenTransaction,
)
from app.infrastructure.services.token_ledger_service import (
    TokenLedgerService,
    get_token_ledger,
)
from app.api.dependencies import get_current_user_id


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/tokens/check", response_model=TokenCheckResponse)
async def check_tokens(
    request: TokenCheckRequest,
    user_id: str = Depends(get_current_user_id),
    ledger: TokenLedgerService = Depends(get_token_ledger),
):
    """Whether the user can afford an operation or an explicit cost."""
    check = await ledger.check_balance(user_id, request.resolved_cost)
    return TokenCheckResponse(
        has_tokens=check.sufficient,
        current_balance=check.current_balance,
    )


@router.post("/tokens/deduct", response_model=TokenDeductResponse)
async def deduct_tokens(
    request: TokenDeductRequest,
    user_id: str = Depends(get_current_user_id),
    ledger: TokenLedgerService = Depends(get_token_ledger),
):
    """
    Charge tokens for a generation that already succeeded.

    Clients call this only after delivering the result.
    """
    result = await ledger.debit(user_id, request.resolved_cost, request.reason)
    return TokenDeductResponse(success=result.success, balance_after=result.balance_after)


@router.get("/tokens/balance", response_model=TokenBalance)
async def get_balance(
    user_id: str = Depends(get_current_user_id),
    ledger: TokenLedgerService = Depends(get_token_ledger),
):
    return await ledger.get_token_balance(user_id)


@router.get("/tokens/transactions", response_model=List[TokenTransaction])
async def get_transactions(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    ledger: TokenLedgerService = Depends(get_token_ledger),
):
    """Newest-first token history."""
    return await ledger.get_transaction_history(
        user_id,
        limit=limit or get_settings().transaction_history_limit,
    )

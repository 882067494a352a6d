"""
Token Ledger Domain Models

Operation costs, transaction kinds and the result types returned by the
usage ledger. Insufficient balance and failed debits are ordinary
outcomes, so they are modelled as values instead of exceptions.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class TransactionType(str, Enum):
    """Kind of balance change recorded in the transaction log."""
    GRANT = "grant"
    DEBIT = "debit"
    RESET = "reset"


class MeteredOperation(str, Enum):
    """Billable generation features."""
    MODEL_CREATION = "model_creation"
    DRESSING = "dressing"
    EDITING = "editing"
    VIDEO = "video"
    CAPTION = "caption"


TOKEN_COSTS = {
    MeteredOperation.MODEL_CREATION: 1,
    MeteredOperation.DRESSING: 1,
    MeteredOperation.EDITING: 1,
    MeteredOperation.VIDEO: 5,
    MeteredOperation.CAPTION: 1,
}


def get_operation_cost(operation: MeteredOperation) -> int:
    """Get the token cost of a metered operation."""
    return TOKEN_COSTS[operation]


# =============================================================================
# Ledger Results
# =============================================================================

@dataclass(frozen=True)
class BalanceCheck:
    """Outcome of a read-only balance check."""
    sufficient: bool
    current_balance: int


@dataclass(frozen=True)
class DebitResult:
    """Outcome of a debit. ``balance_after`` is 0 when the debit failed."""
    success: bool
    balance_after: int
    error: Optional[str] = None


@dataclass(frozen=True)
class BalanceChange:
    """Outcome of a grant or reset."""
    balance_after: int
    transaction_id: str


# =============================================================================
# Entities
# =============================================================================

class TokenTransaction(BaseModel):
    """Immutable entry of the token audit log."""
    id: Optional[str] = None
    user_id: str
    amount: int
    type: TransactionType
    reason: str
    balance_after: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenBalance(BaseModel):
    """Snapshot of a user's balance as shown to the client."""
    tokens_remaining: int = 0
    tokens_limit: int = 0
    tokens_used: int = 0
    plan_type: str = "free"
    status: str = "active"
    period_end: Optional[datetime] = None


# =============================================================================
# Request/Response DTOs
# =============================================================================

class _CostRequest(BaseModel):
    operation: Optional[MeteredOperation] = Field(
        default=None,
        description="Metered operation whose cost applies"
    )
    cost: Optional[int] = Field(
        default=None,
        gt=0,
        description="Explicit token cost (when no operation is given)"
    )

    @model_validator(mode="after")
    def require_operation_or_cost(self):
        if (self.operation is None) == (self.cost is None):
            raise ValueError("Provide exactly one of 'operation' or 'cost'")
        return self

    @property
    def resolved_cost(self) -> int:
        if self.operation is not None:
            return get_operation_cost(self.operation)
        return self.cost


class TokenCheckRequest(_CostRequest):
    """Request DTO for a balance check."""
    pass


class TokenCheckResponse(BaseModel):
    """Response DTO for a balance check."""
    has_tokens: bool
    current_balance: int


class TokenDeductRequest(_CostRequest):
    """Request DTO for a debit."""
    reason: str = Field(..., min_length=1, max_length=500)


class TokenDeductResponse(BaseModel):
    """Response DTO for a debit."""
    success: bool
    balance_after: int

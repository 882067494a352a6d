"""
Token Transaction Database Model

Append-only audit log of balance changes. Rows are never updated or
deleted; ``balance_after`` is the balance right after the change.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field, SQLModel

from app.infrastructure.db.models.base import utc_now


class TokenTransactionModel(SQLModel, table=True):
    """Maps to the 'token_transactions' table."""
    
    __tablename__ = "token_transactions"
    
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True, max_length=36)
    user_id: str = Field(max_length=36, index=True, nullable=False)
    amount: int = Field(nullable=False)
    type: str = Field(max_length=10, nullable=False)
    reason: str = Field(sa_column=Column(Text, nullable=False))
    balance_after: int = Field(nullable=False)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
        index=True,
    )

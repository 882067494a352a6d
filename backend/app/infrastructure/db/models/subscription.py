"""
Subscription Database Model

SQLModel table for subscription data persistence. The row doubles as the
user's account balance; ``token_balance`` is guarded by a CHECK constraint
so no write path can store a negative balance.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field

from app.infrastructure.db.models.base import TimestampMixin


class SubscriptionModel(TimestampMixin, table=True):
    """
    Subscription table for storing user subscription and balance data.
    
    Maps to the 'subscriptions' table in PostgreSQL.
    """
    
    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint("token_balance >= 0", name="ck_subscriptions_token_balance_nonnegative"),
    )
    
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True, max_length=36)
    user_id: str = Field(max_length=36, unique=True, index=True, nullable=False)
    
    plan_type: str = Field(default="free", max_length=50)
    status: str = Field(default="active", max_length=20)
    
    # Stripe IDs
    stripe_customer_id: Optional[str] = Field(default=None, max_length=255, index=True)
    stripe_subscription_id: Optional[str] = Field(default=None, max_length=255, unique=True, index=True)
    stripe_price_id: Optional[str] = Field(default=None, max_length=255)
    
    # Billing period dates
    current_period_start: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    current_period_end: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    
    # Token accounting
    tokens_limit: int = Field(default=0, nullable=False)
    tokens_used: int = Field(default=0, nullable=False)
    token_balance: int = Field(default=0, nullable=False)

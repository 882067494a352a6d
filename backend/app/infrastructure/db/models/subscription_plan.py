"""
Subscription Plan Database Model

Plan catalog: allotment, interval and the Stripe price used for checkout.
"""

from typing import Optional

from sqlmodel import Field

from app.infrastructure.db.models.base import TimestampMixin


class SubscriptionPlanModel(TimestampMixin, table=True):
    """Maps to the 'subscription_plans' table."""
    
    __tablename__ = "subscription_plans"
    
    id: str = Field(primary_key=True, max_length=50)
    name: str = Field(max_length=100)
    tokens_per_period: int = Field(default=0, nullable=False)
    interval: str = Field(default="month", max_length=20)
    price_cents: int = Field(default=0, nullable=False)
    currency: str = Field(default="usd", max_length=3)
    stripe_price_id: Optional[str] = Field(default=None, max_length=255)
    is_active: bool = Field(default=True)

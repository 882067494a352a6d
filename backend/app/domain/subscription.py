"""
Subscription Domain Models

Domain models for subscription management following Clean Architecture.
Enums, DTOs, and domain entities for the subscription bounded context.
"""

import calendar
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PlanInterval(str, Enum):
    """Billing interval of a plan."""
    MONTH = "month"
    SIX_MONTHS = "6months"
    YEAR = "year"


FREE_PLAN_TYPE = "free"


# =============================================================================
# Domain Entities
# =============================================================================

class SubscriptionPlan(BaseModel):
    """A purchasable plan from the plan catalog."""
    id: str
    name: str
    tokens_per_period: int = Field(ge=0)
    interval: PlanInterval = PlanInterval.MONTH
    price_cents: int = 0
    currency: str = "usd"
    stripe_price_id: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True


class Subscription(BaseModel):
    """
    Core subscription entity.

    Also carries the user's account balance: ``token_balance`` is the
    spendable balance, ``tokens_limit`` the per-period allotment and
    ``tokens_used`` the usage within the current period.
    """
    id: Optional[str] = None
    user_id: str
    plan_type: str = FREE_PLAN_TYPE
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    tokens_limit: int = 0
    tokens_used: int = 0
    token_balance: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =============================================================================
# Request/Response DTOs
# =============================================================================

class CreateCheckoutRequest(BaseModel):
    """Request DTO for creating a checkout session."""
    plan_id: str = Field(..., min_length=1, description="Plan to purchase")


class CheckoutResponse(BaseModel):
    """Response DTO for checkout session creation."""
    session_id: str
    url: Optional[str] = None


class PlanResponse(BaseModel):
    """Public view of a plan."""
    id: str
    name: str
    tokens_per_period: int
    interval: PlanInterval
    price_cents: int
    currency: str
    purchasable: bool = Field(description="Whether a Stripe price is configured")


class SubscriptionStatusResponse(BaseModel):
    """Response DTO for subscription status."""
    plan_type: str
    status: SubscriptionStatus
    is_active: bool = Field(description="Whether user has an active paid subscription")
    tokens_limit: int
    tokens_used: int
    tokens_remaining: int
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None


# =============================================================================
# Business Rules
# =============================================================================

PROVIDER_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELLED,
    "past_due": SubscriptionStatus.PAUSED,
}


def map_provider_status(provider_status: Optional[str]) -> SubscriptionStatus:
    """Map a Stripe subscription status to ours. Unknown values expire."""
    return PROVIDER_STATUS_MAP.get(provider_status or "", SubscriptionStatus.EXPIRED)


def _add_months(start: datetime, months: int) -> datetime:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    # Clamp to the last day of the target month (Jan 31 + 1 month -> Feb 28/29)
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def add_interval(start: datetime, interval: PlanInterval) -> datetime:
    """Compute the end of a billing period starting at ``start``."""
    if interval == PlanInterval.MONTH:
        return _add_months(start, 1)
    if interval == PlanInterval.SIX_MONTHS:
        return _add_months(start, 6)
    if interval == PlanInterval.YEAR:
        return _add_months(start, 12)
    raise ValueError(f"Unsupported plan interval: {interval}")


def is_paid_and_active(subscription: Subscription) -> bool:
    """Check if the subscription is a paid plan in good standing."""
    return (
        subscription.plan_type != FREE_PLAN_TYPE
        and subscription.status == SubscriptionStatus.ACTIVE
    )

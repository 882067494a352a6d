"""
Subscription API Routes

REST API endpoints for the plan catalog, checkout and subscription status.
Follows FastAPI best practices with dependency injection.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from app.domain.subscription import (
    FREE_PLAN_TYPE,
    CheckoutResponse,
    CreateCheckoutRequest,
    PlanResponse,
    SubscriptionStatus,
    SubscriptionStatusResponse,
    is_paid_and_active,
)
from app.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
    get_stripe_service,
)
from app.infrastructure.db.repositories.plan_repository import (
    PlanRepository,
    get_plan_repository,
)
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
    get_subscription_repository,
)
from app.api.dependencies import CurrentUser, get_current_user, get_current_user_id


logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Plan Catalog
# =============================================================================

@router.get("/subscriptions/plans", response_model=List[PlanResponse])
async def list_plans(
    plan_repo: PlanRepository = Depends(get_plan_repository),
):
    """Active plans, cheapest first."""
    plans = await plan_repo.list_active()

    return [
        PlanResponse(
            id=plan.id,
            name=plan.name,
            tokens_per_period=plan.tokens_per_period,
            interval=plan.interval,
            price_cents=plan.price_cents,
            currency=plan.currency,
            purchasable=bool(plan.stripe_price_id),
        )
        for plan in plans
    ]


# =============================================================================
# Subscription Status Endpoints
# =============================================================================

@router.get("/subscriptions/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    user_id: str = Depends(get_current_user_id),
    repo: SubscriptionRepository = Depends(get_subscription_repository),
):
    """
    Get the current user's subscription status.

    Users who never subscribed get the free plan with an empty balance.
    """
    subscription = await repo.get_by_user_id(user_id)

    if subscription is None:
        return SubscriptionStatusResponse(
            plan_type=FREE_PLAN_TYPE,
            status=SubscriptionStatus.ACTIVE,
            is_active=False,
            tokens_limit=0,
            tokens_used=0,
            tokens_remaining=0,
        )

    return SubscriptionStatusResponse(
        plan_type=subscription.plan_type,
        status=subscription.status,
        is_active=is_paid_and_active(subscription),
        tokens_limit=subscription.tokens_limit,
        tokens_used=subscription.tokens_used,
        tokens_remaining=subscription.token_balance,
        current_period_start=subscription.current_period_start,
        current_period_end=subscription.current_period_end,
    )


# =============================================================================
# Checkout Endpoints
# =============================================================================

@router.post("/subscriptions/checkout", response_model=CheckoutResponse)
async def create_checkout_session(
    request: CreateCheckoutRequest,
    user: CurrentUser = Depends(get_current_user),
    stripe_service: StripeService = Depends(get_stripe_service),
    plan_repo: PlanRepository = Depends(get_plan_repository),
):
    """
    Create a Stripe Checkout session for a plan.

    Args:
        request: Checkout request with the plan id

    Returns:
        CheckoutResponse with checkout URL and session ID
    """
    plan = await plan_repo.get_by_id(request.plan_id)

    if plan is None or not plan.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Plan not found: {request.plan_id}",
        )

    if not plan.stripe_price_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Plan {plan.id} does not have a Stripe price ID configured",
        )

    try:
        session = await stripe_service.create_checkout_session(
            plan=plan,
            user_id=user.id,
            customer_email=user.email,
        )
    except StripeServiceError as e:
        logger.error(f"Stripe error creating checkout: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return CheckoutResponse(session_id=session.id, url=session.url)

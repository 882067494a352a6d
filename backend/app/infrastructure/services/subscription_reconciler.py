"""
Subscription Reconciler

Applies verified Stripe webhook events to subscriptions and the token ledger.

Event flow:
- checkout.session.completed    -> activate plan, grant the allotment
- customer.subscription.updated -> sync status and period end
- customer.subscription.deleted -> cancelled
- invoice.payment_succeeded     -> renew period, reset the allotment
- invoice.payment_failed        -> paused

Grants and resets are not idempotent; redelivered events are filtered
(or not) by the webhook transport.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from app.domain.subscription import (
    Subscription,
    SubscriptionStatus,
    add_interval,
    map_provider_status,
)
from app.infrastructure.db.models.base import utc_now
from app.infrastructure.db.repositories.plan_repository import (
    PlanRepository,
    get_plan_repository,
)
from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
    get_subscription_repository,
)
from app.infrastructure.exceptions import ReconciliationConfigError
from app.infrastructure.payments.stripe_service import StripeService, get_stripe_service
from app.infrastructure.services.token_ledger_service import (
    TokenLedgerService,
    get_token_ledger,
)


logger = logging.getLogger(__name__)


def _from_timestamp(value: Any) -> Optional[datetime]:
    """Convert a Stripe unix timestamp to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _subscription_period_end(data: Dict[str, Any]) -> Optional[datetime]:
    # Newer API versions carry the period on the subscription items
    period_end = data.get("current_period_end")
    if period_end is None:
        items = (data.get("items") or {}).get("data") or []
        if items:
            period_end = items[0].get("current_period_end")
    return _from_timestamp(period_end)


class SubscriptionReconciler:
    """Keeps local subscription state in step with Stripe billing events."""

    def __init__(
        self,
        subscription_repo: SubscriptionRepository,
        plan_repo: PlanRepository,
        ledger: TokenLedgerService,
        stripe_service: StripeService,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._subscriptions = subscription_repo
        self._plans = plan_repo
        self._ledger = ledger
        self._stripe = stripe_service
        self._clock = clock

    async def handle_event(self, event_type: str, payload: Dict[str, Any]) -> bool:
        """
        Apply one webhook event.

        Args:
            event_type: Stripe event type
            payload: The event's ``data.object``

        Returns:
            True if the event type is handled, False if it was ignored

        Raises:
            ReconciliationConfigError: checkout metadata or plan missing
        """
        handlers = {
            "checkout.session.completed": self._handle_checkout_completed,
            "customer.subscription.updated": self._handle_subscription_updated,
            "customer.subscription.deleted": self._handle_subscription_deleted,
            "invoice.payment_succeeded": self._handle_payment_succeeded,
            "invoice.payment_failed": self._handle_payment_failed,
        }

        handler = handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled event type: {event_type}")
            return False

        await handler(payload)
        return True

    # =========================================================================
    # Checkout
    # =========================================================================

    async def _handle_checkout_completed(self, session: Dict[str, Any]) -> None:
        """Activate the purchased plan and grant its first allotment."""
        metadata = session.get("metadata") or {}
        user_id = metadata.get("user_id")
        plan_type = metadata.get("plan_type")

        missing = [key for key, value in (("user_id", user_id), ("plan_type", plan_type)) if not value]
        if missing:
            raise ReconciliationConfigError(
                f"Checkout session {session.get('id')} is missing metadata",
                missing_keys=missing,
            )

        plan = await self._plans.get_by_id(plan_type)
        if plan is None:
            raise ReconciliationConfigError(
                f"Plan not found: {plan_type}",
                missing_keys=["subscription_plans." + plan_type],
            )

        stripe_subscription_id = session.get("subscription")
        price_id = plan.stripe_price_id
        if stripe_subscription_id:
            price_id = await self._stripe.get_subscription_price_id(stripe_subscription_id) or price_id

        now = self._clock()
        subscription = Subscription(
            user_id=user_id,
            plan_type=plan.id,
            status=SubscriptionStatus.ACTIVE,
            stripe_customer_id=session.get("customer"),
            stripe_subscription_id=stripe_subscription_id,
            stripe_price_id=price_id,
            current_period_start=now,
            current_period_end=add_interval(now, plan.interval),
            tokens_limit=plan.tokens_per_period,
            tokens_used=0,
        )
        await self._subscriptions.upsert(subscription)

        if plan.tokens_per_period > 0:
            await self._ledger.grant(
                user_id,
                plan.tokens_per_period,
                f"Subscription activated: {plan.name}",
                replace_balance=True,
            )

        logger.info(f"Subscription activated for user {user_id}: plan={plan.id}")

    # =========================================================================
    # Subscription Lifecycle
    # =========================================================================

    async def _handle_subscription_updated(self, data: Dict[str, Any]) -> None:
        stripe_subscription_id = data.get("id")
        existing = await self._find(stripe_subscription_id)
        if existing is None:
            return

        status = map_provider_status(data.get("status"))
        await self._subscriptions.update_status(
            stripe_subscription_id,
            status,
            current_period_end=_subscription_period_end(data),
        )
        logger.info(
            f"Subscription {stripe_subscription_id} updated: "
            f"{data.get('status')} -> {status.value}"
        )

    async def _handle_subscription_deleted(self, data: Dict[str, Any]) -> None:
        stripe_subscription_id = data.get("id")
        if await self._find(stripe_subscription_id) is None:
            return

        await self._subscriptions.update_status(stripe_subscription_id, SubscriptionStatus.CANCELLED)
        logger.info(f"Subscription {stripe_subscription_id} cancelled")

    # =========================================================================
    # Invoices
    # =========================================================================

    async def _handle_payment_succeeded(self, invoice: Dict[str, Any]) -> None:
        """Start a new period and reset the balance to the plan allotment."""
        stripe_subscription_id = invoice.get("subscription")
        if not stripe_subscription_id:
            logger.debug(f"Invoice {invoice.get('id')} has no subscription, skipping")
            return

        subscription = await self._find(stripe_subscription_id)
        if subscription is None:
            return

        plan = await self._plans.get_by_id(subscription.plan_type)
        if plan is None:
            logger.error(
                f"Plan {subscription.plan_type} not found while renewing "
                f"subscription {stripe_subscription_id}"
            )
            return

        now = self._clock()
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.current_period_start = now
        subscription.current_period_end = (
            _from_timestamp(invoice.get("period_end")) or add_interval(now, plan.interval)
        )
        subscription.tokens_limit = plan.tokens_per_period
        await self._subscriptions.update(subscription)

        await self._ledger.reset(
            subscription.user_id,
            plan.tokens_per_period,
            f"Subscription renewed: {plan.name}",
        )
        logger.info(f"Subscription renewed for user {subscription.user_id}: plan={plan.id}")

    async def _handle_payment_failed(self, invoice: Dict[str, Any]) -> None:
        stripe_subscription_id = invoice.get("subscription")
        if not stripe_subscription_id:
            return

        if await self._find(stripe_subscription_id) is None:
            return

        await self._subscriptions.update_status(stripe_subscription_id, SubscriptionStatus.PAUSED)
        logger.warning(f"Payment failed for subscription {stripe_subscription_id}")

    async def _find(self, stripe_subscription_id: Optional[str]) -> Optional[Subscription]:
        subscription = None
        if stripe_subscription_id:
            subscription = await self._subscriptions.get_by_stripe_subscription_id(
                stripe_subscription_id
            )

        if subscription is None:
            logger.error(f"Subscription not found: {stripe_subscription_id}")
        return subscription


_reconciler_instance: Optional[SubscriptionReconciler] = None


def get_subscription_reconciler() -> SubscriptionReconciler:
    """Get or create the reconciler singleton."""
    global _reconciler_instance

    if _reconciler_instance is None:
        _reconciler_instance = SubscriptionReconciler(
            subscription_repo=get_subscription_repository(),
            plan_repo=get_plan_repository(),
            ledger=get_token_ledger(),
            stripe_service=get_stripe_service(),
        )

    return _reconciler_instance

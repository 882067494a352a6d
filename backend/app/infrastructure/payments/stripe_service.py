"""
Stripe Payment Service

Infrastructure service for Stripe payment processing.
Handles hosted checkout sessions, subscription lookups and webhook
signature verification.
"""

import asyncio
import logging
from typing import Optional
import stripe
from stripe import StripeError

from app.config.settings import get_settings
from app.domain.subscription import SubscriptionPlan
from app.infrastructure.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


class StripeServiceError(Exception):
    """Base exception for Stripe service errors."""
    pass


class StripeService:
    """
    Stripe payment processing service.

    Keys are read from settings; a missing key raises ConfigurationError
    on first use rather than failing silently.
    """

    def __init__(self):
        """Initialize Stripe with API key from settings."""
        settings = get_settings()
        self._api_key = settings.stripe_secret_key
        self._webhook_secret = settings.stripe_webhook_secret
        self._app_url = settings.app_url.rstrip("/")

        if self._api_key:
            stripe.api_key = self._api_key
            stripe.api_version = settings.stripe_api_version

    def _require_api_key(self) -> None:
        if not self._api_key:
            raise ConfigurationError(
                "Missing Stripe secret key",
                missing_keys=["STRIPE_SECRET_KEY"],
            )

    # =========================================================================
    # Checkout Session (Subscription Flow)
    # =========================================================================

    async def create_checkout_session(
        self,
        plan: SubscriptionPlan,
        user_id: str,
        customer_email: Optional[str] = None,
    ) -> stripe.checkout.Session:
        """
        Create a Stripe Checkout Session for a plan.

        Uses Hosted Checkout for minimal PCI compliance burden. The user
        and plan ids travel in the session metadata and come back in the
        checkout.session.completed webhook.

        Args:
            plan: Plan to purchase (must have a Stripe price)
            user_id: Supabase user ID for metadata
            customer_email: Prefills the checkout form

        Returns:
            stripe.checkout.Session with checkout URL
        """
        self._require_api_key()

        if not plan.stripe_price_id:
            raise ConfigurationError(
                f"Plan {plan.id} does not have a Stripe price ID configured",
                missing_keys=["stripe_price_id"],
            )

        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                payment_method_types=["card"],
                line_items=[
                    {
                        "price": plan.stripe_price_id,
                        "quantity": 1,
                    }
                ],
                mode="subscription",
                success_url=f"{self._app_url}/subscription-success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self._app_url}/subscription-cancelled",
                customer_email=customer_email,
                metadata={
                    "user_id": user_id,
                    "plan_type": plan.id,
                },
            )

            logger.info(
                f"Created checkout session {session.id} for user {user_id}, plan={plan.id}"
            )
            return session

        except StripeError as e:
            logger.error(f"Failed to create checkout session: {e}")
            raise StripeServiceError(f"Failed to create checkout: {e.user_message or e}")

    # =========================================================================
    # Subscription Queries
    # =========================================================================

    async def get_subscription(
        self,
        subscription_id: str,
    ) -> Optional[stripe.Subscription]:
        """
        Retrieve a subscription by ID.

        Args:
            subscription_id: Stripe subscription ID

        Returns:
            stripe.Subscription or None if not found
        """
        self._require_api_key()

        try:
            return await asyncio.to_thread(stripe.Subscription.retrieve, subscription_id)
        except StripeError as e:
            logger.warning(f"Failed to retrieve subscription {subscription_id}: {e}")
            return None

    async def get_subscription_price_id(self, subscription_id: str) -> Optional[str]:
        """Price ID of the first item of a subscription, if any."""
        subscription = await self.get_subscription(subscription_id)
        if not subscription:
            return None

        try:
            return subscription["items"]["data"][0]["price"]["id"]
        except (KeyError, IndexError, TypeError):
            return None

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> stripe.Event:
        """
        Verify webhook signature and construct event.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header

        Returns:
            stripe.Event if valid

        Raises:
            ConfigurationError if the webhook secret is not set
            StripeServiceError if signature invalid
        """
        if not self._webhook_secret:
            raise ConfigurationError(
                "Missing Stripe webhook secret",
                missing_keys=["STRIPE_WEBHOOK_SECRET"],
            )

        try:
            return stripe.Webhook.construct_event(
                payload,
                signature,
                self._webhook_secret,
            )

        except ValueError as e:
            raise StripeServiceError(f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise StripeServiceError(f"Invalid signature: {e}")


# =============================================================================
# Singleton Instance (Dependency Injection Ready)
# =============================================================================

_stripe_service_instance: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Get or create Stripe service singleton."""
    global _stripe_service_instance

    if _stripe_service_instance is None:
        _stripe_service_instance = StripeService()

    return _stripe_service_instance

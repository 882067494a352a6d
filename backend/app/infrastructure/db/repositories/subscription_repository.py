"""
Subscription Repository

Data access layer for subscription persistence.
Follows Repository pattern for Clean Architecture.

Balance columns (token_balance, tokens_used) are written only by the
TokenRepository; updates here leave them alone so status syncs from
webhooks can never overwrite a concurrent debit.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlmodel import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from app.infrastructure.db.database import DatabaseManager, get_db_manager
from app.infrastructure.db.models.base import utc_now
from app.infrastructure.db.models.subscription import SubscriptionModel
from app.infrastructure.exceptions import NotFoundError
from app.domain.subscription import Subscription, SubscriptionStatus


logger = logging.getLogger(__name__)


class SubscriptionRepository:
    """
    Repository for subscription data access.

    Implements CRUD operations with domain model mapping.
    Uses async SQLModel for database operations.
    """

    def __init__(self, db: Optional[DatabaseManager] = None):
        self._db = db or get_db_manager()

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def get_by_user_id(self, user_id: str) -> Optional[Subscription]:
        """
        Get subscription by user ID.

        Args:
            user_id: Supabase auth user ID

        Returns:
            Subscription domain model or None
        """
        async with self._db.session() as session:
            statement = select(SubscriptionModel).where(
                SubscriptionModel.user_id == user_id
            )
            result = await session.execute(statement)
            model = result.scalar_one_or_none()

            if model:
                return self._to_domain(model)

            return None

    async def get_by_stripe_subscription_id(
        self,
        stripe_subscription_id: str,
    ) -> Optional[Subscription]:
        """
        Get subscription by Stripe subscription ID.

        Args:
            stripe_subscription_id: Stripe subscription ID

        Returns:
            Subscription domain model or None
        """
        async with self._db.session() as session:
            statement = select(SubscriptionModel).where(
                SubscriptionModel.stripe_subscription_id == stripe_subscription_id
            )
            result = await session.execute(statement)
            model = result.scalar_one_or_none()

            if model:
                return self._to_domain(model)

            return None

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def upsert(self, subscription: Subscription) -> Subscription:
        """
        Create or update subscription by user_id.

        Uses a native INSERT ... ON CONFLICT for atomicity. A new row
        starts with a zero balance; an existing row keeps its balance.

        Args:
            subscription: Subscription domain model

        Returns:
            Created/updated subscription
        """
        now = utc_now()

        values = {
            "id": subscription.id or str(uuid4()),
            "user_id": subscription.user_id,
            "plan_type": subscription.plan_type,
            "status": subscription.status.value,
            "stripe_customer_id": subscription.stripe_customer_id,
            "stripe_subscription_id": subscription.stripe_subscription_id,
            "stripe_price_id": subscription.stripe_price_id,
            "current_period_start": subscription.current_period_start,
            "current_period_end": subscription.current_period_end,
            "tokens_limit": subscription.tokens_limit,
            "tokens_used": subscription.tokens_used,
            "token_balance": 0,
            "created_at": now,
            "updated_at": now,
        }

        async with self._db.session() as session:
            insert = sqlite_insert if self._db.dialect_name == "sqlite" else pg_insert
            stmt = insert(SubscriptionModel).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id"],
                set_={
                    "plan_type": stmt.excluded.plan_type,
                    "status": stmt.excluded.status,
                    "stripe_customer_id": stmt.excluded.stripe_customer_id,
                    "stripe_subscription_id": stmt.excluded.stripe_subscription_id,
                    "stripe_price_id": stmt.excluded.stripe_price_id,
                    "current_period_start": stmt.excluded.current_period_start,
                    "current_period_end": stmt.excluded.current_period_end,
                    "tokens_limit": stmt.excluded.tokens_limit,
                    "tokens_used": stmt.excluded.tokens_used,
                    "updated_at": now,
                },
            )

            await session.execute(stmt)

        # Fetch the result
        return await self.get_by_user_id(subscription.user_id)

    async def update(self, subscription: Subscription) -> Subscription:
        """
        Update plan, status, billing ids and period of an existing subscription.

        Args:
            subscription: Subscription with updated values

        Returns:
            Updated subscription

        Raises:
            NotFoundError: no subscription for the user
        """
        async with self._db.session() as session:
            statement = select(SubscriptionModel).where(
                SubscriptionModel.user_id == subscription.user_id
            )
            result = await session.execute(statement)
            model = result.scalar_one_or_none()

            if not model:
                raise NotFoundError(
                    f"Subscription not found for user {subscription.user_id}",
                    operation="update",
                    table="subscriptions",
                )

            model.plan_type = subscription.plan_type
            model.status = subscription.status.value
            model.stripe_customer_id = subscription.stripe_customer_id
            model.stripe_subscription_id = subscription.stripe_subscription_id
            model.stripe_price_id = subscription.stripe_price_id
            model.current_period_start = subscription.current_period_start
            model.current_period_end = subscription.current_period_end
            model.tokens_limit = subscription.tokens_limit
            model.updated_at = utc_now()

            await session.flush()
            await session.refresh(model)

            logger.info(f"Updated subscription for user {subscription.user_id}")
            return self._to_domain(model)

    async def update_status(
        self,
        stripe_subscription_id: str,
        status: SubscriptionStatus,
        current_period_end: Optional[datetime] = None,
    ) -> Optional[Subscription]:
        """
        Set the status (and optionally period end) by Stripe subscription ID.

        Returns:
            Updated subscription, or None when no row matches
        """
        async with self._db.session() as session:
            statement = select(SubscriptionModel).where(
                SubscriptionModel.stripe_subscription_id == stripe_subscription_id
            )
            result = await session.execute(statement)
            model = result.scalar_one_or_none()

            if not model:
                return None

            model.status = status.value
            if current_period_end is not None:
                model.current_period_end = current_period_end
            model.updated_at = utc_now()

            await session.flush()
            await session.refresh(model)
            return self._to_domain(model)

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(self, model: SubscriptionModel) -> Subscription:
        """Convert database model to domain entity."""
        return Subscription(
            id=model.id,
            user_id=model.user_id,
            plan_type=model.plan_type,
            status=SubscriptionStatus(model.status),
            stripe_customer_id=model.stripe_customer_id,
            stripe_subscription_id=model.stripe_subscription_id,
            stripe_price_id=model.stripe_price_id,
            current_period_start=model.current_period_start,
            current_period_end=model.current_period_end,
            tokens_limit=model.tokens_limit or 0,
            tokens_used=model.tokens_used or 0,
            token_balance=model.token_balance or 0,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# =============================================================================
# Singleton Instance
# =============================================================================

_subscription_repo_instance: Optional[SubscriptionRepository] = None


def get_subscription_repository() -> SubscriptionRepository:
    """Get or create subscription repository singleton."""
    global _subscription_repo_instance

    if _subscription_repo_instance is None:
        _subscription_repo_instance = SubscriptionRepository()

    return _subscription_repo_instance

"""
Plan Repository

Read access to the subscription plan catalog.
"""

from typing import List, Optional

from sqlmodel import select

from app.domain.subscription import PlanInterval, SubscriptionPlan
from app.infrastructure.db.database import DatabaseManager, get_db_manager
from app.infrastructure.db.models.subscription_plan import SubscriptionPlanModel


class PlanRepository:
    """Repository for the subscription_plans table."""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self._db = db or get_db_manager()

    async def get_by_id(self, plan_id: str) -> Optional[SubscriptionPlan]:
        """Get a plan by ID, active or not."""
        async with self._db.session() as session:
            model = await session.get(SubscriptionPlanModel, plan_id)
            return self._to_domain(model) if model else None

    async def list_active(self) -> List[SubscriptionPlan]:
        """Active plans, cheapest first."""
        async with self._db.session() as session:
            statement = (
                select(SubscriptionPlanModel)
                .where(SubscriptionPlanModel.is_active == True)  # noqa: E712
                .order_by(SubscriptionPlanModel.price_cents)
            )
            result = await session.execute(statement)
            return [self._to_domain(model) for model in result.scalars().all()]

    async def save(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        """Insert or replace a plan (used by seeding and tests)."""
        async with self._db.session() as session:
            model = await session.get(SubscriptionPlanModel, plan.id)
            if model is None:
                model = SubscriptionPlanModel(id=plan.id, name=plan.name)
                session.add(model)

            model.name = plan.name
            model.tokens_per_period = plan.tokens_per_period
            model.interval = plan.interval.value
            model.price_cents = plan.price_cents
            model.currency = plan.currency
            model.stripe_price_id = plan.stripe_price_id
            model.is_active = plan.is_active

            await session.flush()
            return self._to_domain(model)

    def _to_domain(self, model: SubscriptionPlanModel) -> SubscriptionPlan:
        """Convert database model to domain entity."""
        return SubscriptionPlan(
            id=model.id,
            name=model.name,
            tokens_per_period=model.tokens_per_period,
            interval=PlanInterval(model.interval),
            price_cents=model.price_cents,
            currency=model.currency,
            stripe_price_id=model.stripe_price_id,
            is_active=model.is_active,
        )


_plan_repo_instance: Optional[PlanRepository] = None


def get_plan_repository() -> PlanRepository:
    """Get or create plan repository singleton."""
    global _plan_repo_instance

    if _plan_repo_instance is None:
        _plan_repo_instance = PlanRepository()

    return _plan_repo_instance

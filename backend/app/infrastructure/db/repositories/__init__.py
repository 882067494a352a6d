"""
Repository Layer for Fashion Studio

Exports all repository classes for dependency injection.
"""

from app.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
    get_subscription_repository,
)
from app.infrastructure.db.repositories.token_repository import (
    TokenRepository,
    get_token_repository,
)
from app.infrastructure.db.repositories.plan_repository import (
    PlanRepository,
    get_plan_repository,
)


__all__ = [
    "SubscriptionRepository",
    "get_subscription_repository",
    "TokenRepository",
    "get_token_repository",
    "PlanRepository",
    "get_plan_repository",
]

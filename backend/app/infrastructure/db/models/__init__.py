"""
SQLModel ORM Models for Fashion Studio

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from app.infrastructure.db.models.base import (
    TimestampMixin,
    utc_now,
)
from app.infrastructure.db.models.subscription import SubscriptionModel
from app.infrastructure.db.models.subscription_plan import SubscriptionPlanModel
from app.infrastructure.db.models.token_transaction import TokenTransactionModel
from app.infrastructure.db.models.processed_webhook_event import ProcessedWebhookEvent


__all__ = [
    # Base
    "TimestampMixin",
    "utc_now",
    # Billing
    "SubscriptionModel",
    "SubscriptionPlanModel",
    "TokenTransactionModel",
    "ProcessedWebhookEvent",
]

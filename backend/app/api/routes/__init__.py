# API Routes Module
from app.api.routes import (
    captions,
    subscriptions,
    tokens,
    webhooks,
)

__all__ = [
    "captions",
    "subscriptions",
    "tokens",
    "webhooks",
]

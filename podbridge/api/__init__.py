"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from podbridge.api.fulfillment import router as fulfillment_router
from podbridge.api.health import router as health_router
from podbridge.api.merchants import router as merchants_router
from podbridge.api.orders import router as orders_router
from podbridge.api.pubsub import router as pubsub_router
from podbridge.api.triggers import router as triggers_router

__all__ = [
    "fulfillment_router",
    "health_router",
    "merchants_router",
    "orders_router",
    "pubsub_router",
    "triggers_router",
]

"""
Routes package.
"""

from .stores import router as stores_router
from .logs import router as logs_router
from .sync import router as sync_router
from .stock import router as stock_router
from .webhooks import router as webhooks_router

__all__ = [
    "stores_router",
    "logs_router",
    "sync_router",
    "stock_router",
    "webhooks_router",
]

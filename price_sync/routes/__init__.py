"""
Operator API routers.
"""

from .auth import router as auth_router
from .stores import router as stores_router
from .logs import router as logs_router
from .sync import router as sync_router

ALL_ROUTERS = (auth_router, stores_router, logs_router, sync_router)

__all__ = [
    "ALL_ROUTERS",
    "auth_router",
    "stores_router",
    "logs_router",
    "sync_router",
]

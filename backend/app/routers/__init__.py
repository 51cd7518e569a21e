"""Routers package."""

from .auth import router as auth_router
from .ports import router as ports_router
from .terminals import router as terminals_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "ports_router",
    "terminals_router",
    "users_router",
]

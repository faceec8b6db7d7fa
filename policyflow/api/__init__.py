"""API routes package."""

from .routes_generate import router as generate_router
from .routes_policies import router as policies_router
from .routes_cases import router as cases_router

__all__ = [
    "generate_router",
    "policies_router",
    "cases_router",
]

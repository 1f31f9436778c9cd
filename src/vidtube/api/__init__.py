"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: The users router mixes open routes (register, login, refresh-token)
with protected ones, so auth is applied per route with
Depends(get_current_account) rather than at include_router level.
"""

from fastapi import APIRouter

from vidtube.api.health import router as health_router
from vidtube.api.users import router as users_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(users_router, tags=["users"])

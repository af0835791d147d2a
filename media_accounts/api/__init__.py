"""Media accounts API router - aggregates all /api routes."""

from fastapi import APIRouter, Depends

from media_accounts.api import public, users
from media_accounts.api.dependencies import enforce_route_access

# Main API router - all routes are prefixed with /api and pass the permission layer
api_router = APIRouter(prefix="/api", dependencies=[Depends(enforce_route_access)])

api_router.include_router(users.router)
api_router.include_router(public.router)
api_router.include_router(public.config_router)

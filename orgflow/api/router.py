"""
Main API router
"""
from fastapi import APIRouter

from orgflow.api.v1 import (
    health,
    version,
    leaves,
    tickets,
    org,
    permissions,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(leaves.router, prefix="/leave", tags=["leave"])
api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
api_router.include_router(org.router, prefix="/org", tags=["org"])
api_router.include_router(permissions.router, prefix="/permissions", tags=["permissions"])

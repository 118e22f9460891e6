"""
Main API router for v1 endpoints.
"""

from fastapi import APIRouter

from qred.api.v1.endpoints import debts, health, users

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(debts.router, prefix="/debts", tags=["debts"])

"""
Email Platform API Package
"""
from fastapi import APIRouter

from .endpoints import auth, contacts, dashboard, health, organizations, users

# Main API router, mounted under /api by the application factory
api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(contacts.router, prefix="/contacts", tags=["contacts"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(organizations.router, prefix="/organizations", tags=["organizations"])
api_router.include_router(health.router, tags=["health"])

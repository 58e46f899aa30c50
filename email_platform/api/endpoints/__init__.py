"""
API endpoint modules
"""
from . import auth, contacts, dashboard, health, organizations, users

__all__ = ["auth", "contacts", "dashboard", "health", "organizations", "users"]

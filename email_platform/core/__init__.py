"""
Core module: configuration, database, security, exceptions and middleware.
"""

from .config import Settings, get_settings
from .database import Database
from .exceptions import (
    AppException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from .security import (
    Permission,
    ROLE_PERMISSIONS,
    create_access_token,
    get_password_hash,
    permissions_for_role,
    verify_password,
    verify_token,
)

__all__ = [
    "Settings",
    "get_settings",
    "Database",
    "AppException",
    "ForbiddenException",
    "NotFoundException",
    "UnauthorizedException",
    "ValidationException",
    "Permission",
    "ROLE_PERMISSIONS",
    "create_access_token",
    "get_password_hash",
    "permissions_for_role",
    "verify_password",
    "verify_token",
]

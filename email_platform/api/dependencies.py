"""
Dependencies for API endpoints
"""
import logging
import math
from typing import AsyncGenerator, Callable, Optional

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from email_platform.core.config import Settings
from email_platform.core.database import Database
from email_platform.core.exceptions import ForbiddenException, UnauthorizedException
from email_platform.core.security import Permission, permissions_for_role, verify_token
from email_platform.models import User, UserStatus
from email_platform.schemas import CurrentUser

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_db(database: Database = Depends(get_database)) -> AsyncGenerator[AsyncSession, None]:
    async for session in database.session():
        yield session


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """
    Resolve the bearer token into the caller's identity.
    The user row is re-read so that deactivation takes effect immediately.
    """
    if credentials is None:
        raise UnauthorizedException("Access token required")

    payload = verify_token(credentials.credentials, settings)
    if payload is None:
        raise UnauthorizedException("Invalid or expired token")

    user_id = payload.get("sub")
    if user_id is None or not str(user_id).isdigit():
        raise UnauthorizedException("Invalid or expired token")

    stmt = select(User).where(User.id == int(user_id), User.status == UserStatus.ACTIVE.value)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()

    if user is None:
        raise UnauthorizedException("User not found or inactive")

    current_user = CurrentUser(
        id=user.id,
        organization_id=user.organization_id,
        role=user.role,
        email=user.email,
        permissions=permissions_for_role(user.role),
    )
    request.state.user = current_user
    return current_user


def require_permission(permission: Permission) -> Callable:
    """
    Dependency factory: authenticate, then reject with 403 unless the caller's
    role grants ``permission``.
    """
    async def permission_checker(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if not current_user.has_permission(permission):
            logger.warning(
                f"Permission denied: user {current_user.id} ({current_user.role}) "
                f"lacks {permission.value}"
            )
            raise ForbiddenException("Insufficient permissions")
        return current_user

    return permission_checker


class PaginationParams:
    """page/limit query parameters; invalid values fall back to the defaults."""

    MAX_LIMIT = 1000

    def __init__(
        self,
        page: int = Query(1),
        limit: int = Query(50),
    ):
        self.page = page if page >= 1 else 1
        self.limit = min(self.MAX_LIMIT, limit) if limit >= 1 else 50

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def envelope(self, total: int) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "pages": math.ceil(total / self.limit),
        }

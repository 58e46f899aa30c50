"""
Security utilities for authentication and authorization.
"""
import enum
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from email_platform.core.config import Settings
from email_platform.models.user import UserRole

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class Permission(str, enum.Enum):
    """Capabilities checked by ``require_permission``."""
    MANAGE_ORGANIZATION = "manage_organization"
    MANAGE_USERS = "manage_users"
    VIEW_ANALYTICS = "view_analytics"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    MANAGE_CONTACTS = "manage_contacts"
    MANAGE_CAMPAIGNS = "manage_campaigns"


ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[Permission]] = {
    UserRole.ADMIN: frozenset(Permission),
    UserRole.MANAGER: frozenset({
        Permission.VIEW_ANALYTICS,
        Permission.VIEW_AUDIT_LOGS,
        Permission.MANAGE_CONTACTS,
        Permission.MANAGE_CAMPAIGNS,
    }),
    UserRole.USER: frozenset({
        Permission.VIEW_ANALYTICS,
        Permission.MANAGE_CONTACTS,
    }),
}


def permissions_for_role(role: str) -> FrozenSet[Permission]:
    """Permission set for a role name; unknown roles get none."""
    try:
        return ROLE_PERMISSIONS[UserRole(role)]
    except ValueError:
        logger.warning(f"Unknown role {role!r}, granting no permissions")
        return frozenset()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str, rounds: int = 12) -> str:
    """Hash a password with the given bcrypt cost factor."""
    return pwd_context.copy(bcrypt__rounds=rounds).hash(password)


def create_access_token(
    data: Dict[str, Any],
    settings: Settings,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRES_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str, settings: Settings) -> Optional[Dict[str, Any]]:
    """
    Verify signature and expiry of an access token.
    Returns the payload, or None when the token is invalid, expired or not an
    access token.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.debug(f"JWT decode error: {e}")
        return None
    if payload.get("type") != "access":
        return None
    return payload

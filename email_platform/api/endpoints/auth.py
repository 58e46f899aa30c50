"""
Authentication API endpoints
"""
import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from email_platform.api.dependencies import client_ip, get_current_user, get_db, get_settings
from email_platform.core.config import Settings
from email_platform.core.exceptions import (
    AppException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from email_platform.core.security import create_access_token, get_password_hash, verify_password
from email_platform.models import AuditAction, Organization, User, UserRole, UserStatus, utcnow
from email_platform.schemas import CurrentUser, LoginRequest, RegisterRequest
from email_platform.services import record_audit

logger = logging.getLogger(__name__)
router = APIRouter()


def user_profile(user: User, organization_name: str) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": user.role,
        "organizationId": user.organization_id,
        "organizationName": organization_name,
    }


def issue_token(user: User, settings: Settings) -> str:
    token_data = {
        "sub": str(user.id),
        "org_id": user.organization_id,
        "role": user.role,
    }
    return create_access_token(token_data, settings)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Register a new organization together with its first admin user.

    Both rows and the audit entry are committed in a single transaction.
    """
    organization_name = (payload.organization_name or "").strip()
    if not (organization_name and payload.email and payload.password):
        raise ValidationException("Organization name, email and password are required")

    email = str(payload.email)

    try:
        existing_user = await db.scalar(select(User.id).where(User.email == email))
        if existing_user is not None:
            raise ValidationException("User with this email already exists")

        organization = Organization(name=organization_name)
        db.add(organization)
        await db.flush()

        user = User(
            organization_id=organization.id,
            email=email,
            password_hash=get_password_hash(payload.password, settings.BCRYPT_ROUNDS),
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=UserRole.ADMIN.value,
            status=UserStatus.ACTIVE.value,
        )
        db.add(user)
        await db.flush()

        record_audit(
            db,
            organization_id=organization.id,
            user_id=user.id,
            action=AuditAction.ORGANIZATION_CREATED,
            resource_type="organization",
            resource_id=organization.id,
            new_values={"name": organization.name, "plan": organization.plan},
            ip_address=client_ip(request),
        )
        await db.commit()

        logger.info(f"User registered: {user.email} ({organization.name})")

        return {
            "token": issue_token(user, settings),
            "user": user_profile(user, organization.name),
        }

    except AppException:
        raise
    except IntegrityError:
        await db.rollback()
        raise ValidationException("User with this email already exists")
    except Exception as e:
        logger.error(f"Registration error: {str(e)}", exc_info=True)
        raise AppException("Registration failed")


@router.post("/login")
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Login with email and password
    """
    if not payload.email or not payload.password:
        raise ValidationException("Email and password are required")

    try:
        row = (
            await db.execute(
                select(User, Organization.name)
                .join(Organization, User.organization_id == Organization.id)
                .where(User.email == payload.email)
            )
        ).first()

        if row is None or not verify_password(payload.password, row[0].password_hash):
            raise UnauthorizedException("Invalid credentials")

        user, organization_name = row
        if not user.is_active:
            raise ForbiddenException("Account is inactive")

        user.last_login = utcnow()
        await db.commit()

        logger.info(f"User logged in: {user.email}")

        return {
            "token": issue_token(user, settings),
            "user": user_profile(user, organization_name),
        }

    except AppException:
        raise
    except Exception as e:
        logger.error(f"Login error: {str(e)}", exc_info=True)
        raise AppException("Login failed")


@router.get("/me")
async def me(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Get current user profile"""
    row = (
        await db.execute(
            select(User, Organization.name)
            .join(Organization, User.organization_id == Organization.id)
            .where(User.id == current_user.id)
        )
    ).first()

    if row is None:
        raise NotFoundException("User not found")

    user, organization_name = row
    return user_profile(user, organization_name)

"""
User management and invitation endpoints
"""
import logging
import uuid

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from email_platform.api.dependencies import client_ip, get_db, get_settings, require_permission
from email_platform.core.config import Settings
from email_platform.core.exceptions import AppException, NotFoundException, ValidationException
from email_platform.core.security import Permission, get_password_hash
from email_platform.models import (
    INVITATION_TTL,
    AuditAction,
    Campaign,
    User,
    UserInvitation,
    UserRole,
    UserStatus,
    utcnow,
)
from email_platform.schemas import AcceptInvitationRequest, CurrentUser, InviteRequest, RoleUpdate
from email_platform.services import record_audit

logger = logging.getLogger(__name__)
router = APIRouter()

VALID_ROLES = {role.value for role in UserRole}


@router.get("")
async def list_users(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_USERS)),
):
    """
    Users of the caller's organization with the number of campaigns each created.
    """
    try:
        campaign_count = (
            select(func.count(Campaign.id))
            .where(Campaign.created_by == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        stmt = (
            select(User, campaign_count.label("campaign_count"))
            .where(User.organization_id == current_user.organization_id)
            .order_by(User.created_at.desc(), User.id.desc())
        )
        rows = (await db.execute(stmt)).all()

        return [
            {
                "id": user.id,
                "email": user.email,
                "first_name": user.first_name,
                "last_name": user.last_name,
                "role": user.role,
                "status": user.status,
                "last_login": user.last_login,
                "created_at": user.created_at,
                "campaign_count": count,
            }
            for user, count in rows
        ]

    except Exception as e:
        logger.error(f"Get users error: {str(e)}", exc_info=True)
        raise AppException("Failed to fetch users")


@router.post("/invite", status_code=status.HTTP_201_CREATED)
async def invite_user(
    request: Request,
    payload: InviteRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_USERS)),
):
    """
    Create a 7-day invitation. The token is returned in the response until
    out-of-band delivery exists.
    """
    if not payload.email:
        raise ValidationException("Email is required")
    if payload.role not in VALID_ROLES:
        raise ValidationException("Invalid role")

    email = str(payload.email)

    try:
        existing_user = await db.scalar(select(User.id).where(User.email == email))
        if existing_user is not None:
            raise ValidationException("User with this email already exists")

        existing_invitation = await db.scalar(
            select(UserInvitation.id).where(
                UserInvitation.email == email,
                UserInvitation.organization_id == current_user.organization_id,
                UserInvitation.is_pending(),
            )
        )
        if existing_invitation is not None:
            raise ValidationException("Invitation already sent to this email")

        token = str(uuid.uuid4())
        invitation = UserInvitation(
            organization_id=current_user.organization_id,
            email=email,
            role=payload.role,
            token=token,
            expires_at=utcnow() + INVITATION_TTL,
            invited_by=current_user.id,
        )
        db.add(invitation)
        await db.flush()

        record_audit(
            db,
            organization_id=current_user.organization_id,
            user_id=current_user.id,
            action=AuditAction.USER_INVITED,
            resource_type="user_invitation",
            resource_id=invitation.id,
            new_values={"email": email, "role": payload.role},
            ip_address=client_ip(request),
        )
        await db.commit()

        logger.info(f"Invitation created for {email} by user {current_user.id}")
        return {
            "message": "User invitation sent successfully",
            "invitationToken": token,
        }

    except AppException:
        raise
    except Exception as e:
        logger.error(f"Invite user error: {str(e)}", exc_info=True)
        raise AppException("Failed to invite user")


@router.post("/accept-invitation")
async def accept_invitation(
    request: Request,
    payload: AcceptInvitationRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Public endpoint: turn a pending invitation into an active user account.
    """
    if not (payload.token and payload.password and payload.first_name and payload.last_name):
        raise ValidationException("All fields are required")

    try:
        invitation = await db.scalar(
            select(UserInvitation).where(
                UserInvitation.token == payload.token,
                UserInvitation.is_pending(),
            )
        )
        if invitation is None:
            raise ValidationException("Invalid or expired invitation")

        taken = await db.scalar(select(User.id).where(User.email == invitation.email))
        if taken is not None:
            raise ValidationException("User with this email already exists")

        user = User(
            organization_id=invitation.organization_id,
            email=invitation.email,
            password_hash=get_password_hash(payload.password, settings.BCRYPT_ROUNDS),
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=invitation.role,
            status=UserStatus.ACTIVE.value,
        )
        db.add(user)
        await db.flush()

        invitation.accepted_at = utcnow()

        record_audit(
            db,
            organization_id=invitation.organization_id,
            user_id=user.id,
            action=AuditAction.USER_REGISTERED,
            resource_type="user",
            resource_id=user.id,
            new_values={"email": invitation.email, "role": invitation.role},
            ip_address=client_ip(request),
        )
        await db.commit()

        logger.info(f"Invitation {invitation.id} accepted by {invitation.email}")
        return {"message": "Account created successfully"}

    except AppException:
        raise
    except IntegrityError:
        await db.rollback()
        raise ValidationException("User with this email already exists")
    except Exception as e:
        logger.error(f"Accept invitation error: {str(e)}", exc_info=True)
        raise AppException("Failed to create account")


@router.get("/invitations")
async def list_invitations(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_USERS)),
):
    """
    Pending (not accepted, not expired) invitations with the inviter's name.
    """
    try:
        stmt = (
            select(UserInvitation, User.first_name, User.last_name)
            .join(User, UserInvitation.invited_by == User.id)
            .where(
                UserInvitation.organization_id == current_user.organization_id,
                UserInvitation.is_pending(),
            )
            .order_by(UserInvitation.created_at.desc(), UserInvitation.id.desc())
        )
        rows = (await db.execute(stmt)).all()

        return [
            {
                "id": invitation.id,
                "email": invitation.email,
                "role": invitation.role,
                "created_at": invitation.created_at,
                "expires_at": invitation.expires_at,
                "first_name": first_name,
                "last_name": last_name,
            }
            for invitation, first_name, last_name in rows
        ]

    except Exception as e:
        logger.error(f"Get invitations error: {str(e)}", exc_info=True)
        raise AppException("Failed to fetch invitations")


@router.delete("/invitations/{invitation_id}")
async def cancel_invitation(
    request: Request,
    invitation_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_USERS)),
):
    try:
        invitation = await db.scalar(
            select(UserInvitation).where(
                UserInvitation.id == invitation_id,
                UserInvitation.organization_id == current_user.organization_id,
            )
        )
        if invitation is None:
            raise NotFoundException("Invitation not found")

        email = invitation.email
        await db.delete(invitation)

        record_audit(
            db,
            organization_id=current_user.organization_id,
            user_id=current_user.id,
            action=AuditAction.INVITATION_CANCELLED,
            resource_type="user_invitation",
            resource_id=invitation_id,
            old_values={"email": email},
            ip_address=client_ip(request),
        )
        await db.commit()

        return {"message": "Invitation cancelled successfully"}

    except AppException:
        raise
    except Exception as e:
        logger.error(f"Cancel invitation error: {str(e)}", exc_info=True)
        raise AppException("Failed to cancel invitation")


@router.put("/{user_id}/role")
async def update_user_role(
    request: Request,
    user_id: int,
    payload: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_USERS)),
):
    if payload.role not in VALID_ROLES:
        raise ValidationException("Invalid role")

    try:
        user = await db.scalar(
            select(User).where(
                User.id == user_id,
                User.organization_id == current_user.organization_id,
            )
        )
        if user is None:
            raise NotFoundException("User not found")

        old_role = user.role
        user.role = payload.role

        record_audit(
            db,
            organization_id=current_user.organization_id,
            user_id=current_user.id,
            action=AuditAction.USER_ROLE_UPDATED,
            resource_type="user",
            resource_id=user_id,
            old_values={"role": old_role},
            new_values={"role": payload.role},
            ip_address=client_ip(request),
        )
        await db.commit()

        logger.info(f"User {user_id} role changed {old_role} -> {payload.role} by user {current_user.id}")
        return {"message": "User role updated successfully"}

    except AppException:
        raise
    except Exception as e:
        logger.error(f"Update user role error: {str(e)}", exc_info=True)
        raise AppException("Failed to update user role")


@router.put("/{user_id}/deactivate")
async def deactivate_user(
    request: Request,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_USERS)),
):
    """
    Soft-deactivate a user of the caller's organization. Callers cannot
    deactivate themselves.
    """
    try:
        user = await db.scalar(
            select(User).where(
                User.id == user_id,
                User.organization_id == current_user.organization_id,
            )
        )
        if user is None:
            raise NotFoundException("User not found")

        if user_id == current_user.id:
            raise ValidationException("Cannot deactivate your own account")

        user.status = UserStatus.INACTIVE.value

        record_audit(
            db,
            organization_id=current_user.organization_id,
            user_id=current_user.id,
            action=AuditAction.USER_DEACTIVATED,
            resource_type="user",
            resource_id=user_id,
            new_values={"status": UserStatus.INACTIVE.value},
            ip_address=client_ip(request),
        )
        await db.commit()

        logger.info(f"User {user_id} deactivated by user {current_user.id}")
        return {"message": "User deactivated successfully"}

    except AppException:
        raise
    except Exception as e:
        logger.error(f"Deactivate user error: {str(e)}", exc_info=True)
        raise AppException("Failed to deactivate user")

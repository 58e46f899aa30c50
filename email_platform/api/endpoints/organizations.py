"""
Organization endpoints: details, settings, usage and audit trail
"""
import json
import logging
from datetime import timedelta
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from email_platform.api.dependencies import (
    PaginationParams,
    client_ip,
    get_current_user,
    get_db,
    require_permission,
)
from email_platform.core.exceptions import AppException, NotFoundException, ValidationException
from email_platform.core.security import Permission
from email_platform.models import (
    AuditAction,
    AuditLog,
    Campaign,
    Contact,
    ContactStatus,
    Organization,
    OrganizationPlan,
    OrganizationSetting,
    User,
    UserStatus,
    utcnow,
)
from email_platform.schemas import CurrentUser, OrganizationUpdate
from email_platform.services import record_audit

logger = logging.getLogger(__name__)
router = APIRouter()

USAGE_WINDOW = timedelta(days=30)


def usage_percentage(current: float, limit: float) -> float:
    """current/limit as a percentage; a zero (or negative) limit means 0%."""
    if not limit or limit <= 0:
        return 0
    return current / limit * 100


async def _load_organization(db: AsyncSession, organization_id: int) -> Organization:
    organization = await db.get(Organization, organization_id)
    if organization is None:
        raise NotFoundException("Organization not found")
    return organization


@router.get("")
async def get_organization(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Organization details with active user, contact and campaign counts.
    """
    try:
        stmt = (
            select(
                Organization,
                func.count(distinct(User.id)).label("user_count"),
                func.count(distinct(Contact.id)).label("contact_count"),
                func.count(distinct(Campaign.id)).label("campaign_count"),
            )
            .outerjoin(
                User,
                (User.organization_id == Organization.id) & (User.status == UserStatus.ACTIVE.value),
            )
            .outerjoin(Contact, Contact.organization_id == Organization.id)
            .outerjoin(Campaign, Campaign.organization_id == Organization.id)
            .where(Organization.id == current_user.organization_id)
            .group_by(Organization.id)
        )
        row = (await db.execute(stmt)).first()

        if row is None:
            raise NotFoundException("Organization not found")

        organization, user_count, contact_count, campaign_count = row
        return {
            **organization.to_dict(),
            "user_count": user_count,
            "contact_count": contact_count,
            "campaign_count": campaign_count,
        }

    except AppException:
        raise
    except Exception as e:
        logger.error(f"Get organization error: {str(e)}", exc_info=True)
        raise AppException("Failed to fetch organization details")


@router.put("")
async def update_organization(
    request: Request,
    payload: OrganizationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_ORGANIZATION)),
):
    """
    Rename the organization and optionally change its plan.
    """
    name = (payload.name or "").strip()
    if not name:
        raise ValidationException("Organization name is required")

    if payload.plan is not None and payload.plan not in {p.value for p in OrganizationPlan}:
        raise ValidationException("Invalid plan")

    try:
        organization = await _load_organization(db, current_user.organization_id)
        old_values = {"name": organization.name, "plan": organization.plan}

        organization.name = name
        if payload.plan is not None:
            organization.plan = payload.plan

        record_audit(
            db,
            organization_id=current_user.organization_id,
            user_id=current_user.id,
            action=AuditAction.ORGANIZATION_UPDATED,
            resource_type="organization",
            resource_id=current_user.organization_id,
            old_values=old_values,
            new_values={"name": organization.name, "plan": organization.plan},
            ip_address=client_ip(request),
        )
        await db.commit()

        logger.info(f"Organization {organization.id} updated by user {current_user.id}")
        return {"message": "Organization updated successfully"}

    except AppException:
        raise
    except Exception as e:
        logger.error(f"Update organization error: {str(e)}", exc_info=True)
        raise AppException("Failed to update organization")


def _setting_text(value: Any):
    """Strings are stored verbatim, other JSON values as their JSON text."""
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value)


@router.get("/settings")
async def get_organization_settings(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_ORGANIZATION)),
):
    try:
        stmt = select(OrganizationSetting).where(
            OrganizationSetting.organization_id == current_user.organization_id
        )
        settings = (await db.execute(stmt)).scalars().all()
        return {setting.setting_key: setting.setting_value for setting in settings}

    except Exception as e:
        logger.error(f"Get organization settings error: {str(e)}", exc_info=True)
        raise AppException("Failed to fetch organization settings")


@router.put("/settings")
async def update_organization_settings(
    request: Request,
    settings: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_ORGANIZATION)),
):
    """
    Upsert every submitted key. The whole batch is one audit entry.
    """
    try:
        for key, value in settings.items():
            await db.merge(
                OrganizationSetting(
                    organization_id=current_user.organization_id,
                    setting_key=key,
                    setting_value=_setting_text(value),
                )
            )

        record_audit(
            db,
            organization_id=current_user.organization_id,
            user_id=current_user.id,
            action=AuditAction.SETTINGS_UPDATED,
            resource_type="organization_settings",
            new_values=settings,
            ip_address=client_ip(request),
        )
        await db.commit()

        return {"message": "Settings updated successfully"}

    except Exception as e:
        logger.error(f"Update organization settings error: {str(e)}", exc_info=True)
        raise AppException("Failed to update settings")


@router.get("/usage")
async def get_organization_usage(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_ANALYTICS)),
):
    """
    Active contacts and trailing-30-day sends against the plan limits.
    """
    try:
        organization = await _load_organization(db, current_user.organization_id)

        current_contacts = await db.scalar(
            select(func.count(Contact.id)).where(
                Contact.organization_id == organization.id,
                Contact.status == ContactStatus.ACTIVE.value,
            )
        )
        emails_sent = await db.scalar(
            select(func.coalesce(func.sum(Campaign.send_count), 0)).where(
                Campaign.organization_id == organization.id,
                Campaign.sent_at >= utcnow() - USAGE_WINDOW,
            )
        )

        return {
            "contact_limit": organization.contact_limit,
            "monthly_email_limit": organization.monthly_email_limit,
            "current_contacts": current_contacts,
            "emails_sent_this_month": emails_sent,
            "usage_percentages": {
                "contacts": usage_percentage(current_contacts, organization.contact_limit),
                "emails": usage_percentage(emails_sent, organization.monthly_email_limit),
            },
        }

    except AppException:
        raise
    except Exception as e:
        logger.error(f"Get organization usage error: {str(e)}", exc_info=True)
        raise AppException("Failed to fetch usage statistics")


@router.get("/audit-logs")
async def get_audit_logs(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_AUDIT_LOGS)),
):
    """
    Paginated audit trail, newest first, with the acting user's name and email.
    """
    try:
        stmt = (
            select(AuditLog, User.first_name, User.last_name, User.email)
            .outerjoin(User, AuditLog.user_id == User.id)
            .where(AuditLog.organization_id == current_user.organization_id)
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        rows = (await db.execute(stmt)).all()

        total = await db.scalar(
            select(func.count(AuditLog.id)).where(
                AuditLog.organization_id == current_user.organization_id
            )
        )

        logs = []
        for entry, first_name, last_name, email in rows:
            log = entry.to_dict()
            log["old_values"] = AuditLog.decode(entry.old_values)
            log["new_values"] = AuditLog.decode(entry.new_values)
            log.update(first_name=first_name, last_name=last_name, email=email)
            logs.append(log)

        return {"logs": logs, "pagination": pagination.envelope(total)}

    except Exception as e:
        logger.error(f"Get audit logs error: {str(e)}", exc_info=True)
        raise AppException("Failed to fetch audit logs")

"""
Contact endpoints
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
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
from email_platform.models import AuditAction, Contact, ContactStatus, Organization
from email_platform.schemas import ContactCreate, ContactUpdate, CurrentUser
from email_platform.services import record_audit

logger = logging.getLogger(__name__)
router = APIRouter()

VALID_STATUSES = {s.value for s in ContactStatus}


async def _load_contact(db: AsyncSession, contact_id: int, organization_id: int) -> Contact:
    contact = await db.scalar(
        select(Contact).where(
            Contact.id == contact_id,
            Contact.organization_id == organization_id,
        )
    )
    if contact is None:
        raise NotFoundException("Contact not found")
    return contact


@router.get("")
async def list_contacts(
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Paginated contacts, newest first. ``search`` matches email or either name.
    """
    try:
        conditions = [Contact.organization_id == current_user.organization_id]
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    Contact.email.ilike(pattern),
                    Contact.first_name.ilike(pattern),
                    Contact.last_name.ilike(pattern),
                )
            )
        if status_filter:
            conditions.append(Contact.status == status_filter)

        stmt = (
            select(Contact)
            .where(*conditions)
            .order_by(Contact.created_at.desc(), Contact.id.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        contacts = (await db.execute(stmt)).scalars().all()
        total = await db.scalar(select(func.count(Contact.id)).where(*conditions))

        return {
            "contacts": [contact.to_dict() for contact in contacts],
            "pagination": pagination.envelope(total),
        }

    except Exception as e:
        logger.error(f"Get contacts error: {str(e)}", exc_info=True)
        raise AppException("Failed to fetch contacts")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_contact(
    request: Request,
    payload: ContactCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_CONTACTS)),
):
    """
    Add a contact unless the email is already listed or the plan's contact
    limit is reached. A limit of zero or less means unlimited.
    """
    if not payload.email:
        raise ValidationException("Email is required")

    contact_status = payload.status or ContactStatus.ACTIVE.value
    if contact_status not in VALID_STATUSES:
        raise ValidationException("Invalid status")

    email = str(payload.email)

    try:
        duplicate = await db.scalar(
            select(Contact.id).where(
                Contact.organization_id == current_user.organization_id,
                Contact.email == email,
            )
        )
        if duplicate is not None:
            raise ValidationException("Contact with this email already exists")

        contact_limit = await db.scalar(
            select(Organization.contact_limit).where(
                Organization.id == current_user.organization_id
            )
        )
        if contact_limit and contact_limit > 0:
            current_contacts = await db.scalar(
                select(func.count(Contact.id)).where(
                    Contact.organization_id == current_user.organization_id
                )
            )
            if current_contacts >= contact_limit:
                raise ValidationException("Contact limit reached for your plan")

        contact = Contact(
            organization_id=current_user.organization_id,
            email=email,
            first_name=payload.first_name,
            last_name=payload.last_name,
            status=contact_status,
            created_by=current_user.id,
        )
        db.add(contact)
        await db.flush()

        record_audit(
            db,
            organization_id=current_user.organization_id,
            user_id=current_user.id,
            action=AuditAction.CONTACT_CREATED,
            resource_type="contact",
            resource_id=contact.id,
            new_values={"email": email, "status": contact_status},
            ip_address=client_ip(request),
        )
        await db.commit()

        return contact.to_dict()

    except AppException:
        raise
    except IntegrityError:
        await db.rollback()
        raise ValidationException("Contact with this email already exists")
    except Exception as e:
        logger.error(f"Create contact error: {str(e)}", exc_info=True)
        raise AppException("Failed to create contact")


@router.put("/{contact_id}")
async def update_contact(
    request: Request,
    contact_id: int,
    payload: ContactUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_CONTACTS)),
):
    # status may be omitted but never cleared
    if "status" in payload.model_fields_set and payload.status not in VALID_STATUSES:
        raise ValidationException("Invalid status")

    try:
        contact = await _load_contact(db, contact_id, current_user.organization_id)

        changes = payload.model_dump(exclude_unset=True)
        old_values = {key: getattr(contact, key) for key in changes}
        for key, value in changes.items():
            setattr(contact, key, value)

        record_audit(
            db,
            organization_id=current_user.organization_id,
            user_id=current_user.id,
            action=AuditAction.CONTACT_UPDATED,
            resource_type="contact",
            resource_id=contact.id,
            old_values=old_values,
            new_values=changes,
            ip_address=client_ip(request),
        )
        await db.commit()

        return contact.to_dict()

    except AppException:
        raise
    except Exception as e:
        logger.error(f"Update contact error: {str(e)}", exc_info=True)
        raise AppException("Failed to update contact")


@router.delete("/{contact_id}")
async def delete_contact(
    request: Request,
    contact_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_CONTACTS)),
):
    try:
        contact = await _load_contact(db, contact_id, current_user.organization_id)
        email = contact.email
        await db.delete(contact)

        record_audit(
            db,
            organization_id=current_user.organization_id,
            user_id=current_user.id,
            action=AuditAction.CONTACT_DELETED,
            resource_type="contact",
            resource_id=contact_id,
            old_values={"email": email},
            ip_address=client_ip(request),
        )
        await db.commit()

        return {"message": "Contact deleted successfully"}

    except AppException:
        raise
    except Exception as e:
        logger.error(f"Delete contact error: {str(e)}", exc_info=True)
        raise AppException("Failed to delete contact")

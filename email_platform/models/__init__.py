"""
Database models for the email platform.
"""
from .base import Base, utcnow
from .organization import Organization, OrganizationPlan, OrganizationSetting
from .user import INVITATION_TTL, User, UserInvitation, UserRole, UserStatus
from .audit_log import AuditAction, AuditLog
from .contact import Campaign, CampaignStatus, Contact, ContactStatus

__all__ = [
    "Base",
    "utcnow",
    "Organization",
    "OrganizationPlan",
    "OrganizationSetting",
    "User",
    "UserInvitation",
    "UserRole",
    "UserStatus",
    "INVITATION_TTL",
    "AuditAction",
    "AuditLog",
    "Campaign",
    "CampaignStatus",
    "Contact",
    "ContactStatus",
]

"""
Append-only audit trail.
"""
import enum
import json
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from email_platform.models.base import Base, utcnow


class AuditAction(str, enum.Enum):
    ORGANIZATION_CREATED = "organization_created"
    ORGANIZATION_UPDATED = "organization_updated"
    SETTINGS_UPDATED = "settings_updated"
    USER_INVITED = "user_invited"
    USER_REGISTERED = "user_registered"
    USER_ROLE_UPDATED = "user_role_updated"
    USER_DEACTIVATED = "user_deactivated"
    INVITATION_CANCELLED = "invitation_cancelled"
    CONTACT_CREATED = "contact_created"
    CONTACT_UPDATED = "contact_updated"
    CONTACT_DELETED = "contact_deleted"


class AuditLog(Base):
    """
    One row per state-changing action. Rows are never updated or deleted.
    old_values/new_values hold JSON-serialized snapshots.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(50), nullable=False)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(Integer, nullable=True)
    old_values = Column(Text, nullable=True)
    new_values = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_audit_logs_organization_timestamp", "organization_id", "timestamp"),
    )

    @staticmethod
    def decode(value: Optional[str]) -> Optional[Dict[str, Any]]:
        return json.loads(value) if value else None

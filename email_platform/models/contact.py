"""
Contact and campaign models.
"""
import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from email_platform.models.base import Base, TimestampMixin


class ContactStatus(str, enum.Enum):
    ACTIVE = "active"
    UNSUBSCRIBED = "unsubscribed"
    BOUNCED = "bounced"


class CampaignStatus(str, enum.Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENT = "sent"


class Contact(Base, TimestampMixin):
    """Mailing list recipient owned by an organization."""
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=ContactStatus.ACTIVE.value)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_contacts_organization_email"),
    )


class Campaign(Base, TimestampMixin):
    """
    Email campaign. Only read here, for counts and usage; sending is handled
    elsewhere.
    """
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=CampaignStatus.DRAFT.value)
    send_count = Column(Integer, nullable=False, default=0)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    sent_at = Column(DateTime, nullable=True)

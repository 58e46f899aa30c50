"""
Organization model for multi-tenant architecture.
"""
import enum

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from email_platform.models.base import Base, TimestampMixin


class OrganizationPlan(str, enum.Enum):
    """Organization subscription plans."""
    FREE = "free"
    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class Organization(Base, TimestampMixin):
    """
    Tenant boundary. Every other row in the schema carries an organization_id.
    """
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    plan = Column(String(50), nullable=False, default=OrganizationPlan.FREE.value)

    # Limits
    contact_limit = Column(Integer, nullable=False, default=1000)
    monthly_email_limit = Column(Integer, nullable=False, default=10000)

    users = relationship("User", back_populates="organization", cascade="all, delete-orphan")
    settings = relationship("OrganizationSetting", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Organization {self.name}>"


class OrganizationSetting(Base):
    """Key/value setting scoped to one organization."""
    __tablename__ = "organization_settings"

    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    setting_key = Column(String(100), primary_key=True)
    setting_value = Column(Text, nullable=True)

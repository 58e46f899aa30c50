"""
User and invitation models for authentication and authorization.
"""
import enum
from datetime import timedelta

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, and_
from sqlalchemy.ext.hybrid import hybrid_method
from sqlalchemy.orm import relationship

from email_platform.models.base import Base, TimestampMixin, utcnow

INVITATION_TTL = timedelta(days=7)


class UserRole(str, enum.Enum):
    """User roles enumeration."""
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class User(Base, TimestampMixin):
    """
    User model representing application users.
    Users are deactivated, never deleted.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Identification
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    # Authentication
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value)
    last_login = Column(DateTime, nullable=True)

    organization = relationship("Organization", back_populates="users")

    __table_args__ = (
        Index("ix_users_organization_status", "organization_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    def __repr__(self):
        return f"<User {self.email}>"


class UserInvitation(Base):
    """
    Single-use, time-limited invitation to join an organization.
    Consumed by acceptance (accepted_at is stamped) or deleted on cancel.
    """
    __tablename__ = "user_invitations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    token = Column(String(64), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    invited_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    @hybrid_method
    def is_pending(self, now=None) -> bool:
        """Not yet accepted and not expired. Usable as a query filter on the class."""
        now = now or utcnow()
        return self.accepted_at is None and self.expires_at > now

    @is_pending.inplace.expression
    @classmethod
    def _is_pending_expression(cls, now=None):
        now = now or utcnow()
        return and_(cls.accepted_at.is_(None), cls.expires_at > now)

    def __repr__(self):
        return f"<UserInvitation {self.email}>"

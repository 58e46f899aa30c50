"""
Pydantic schemas for API request validation and the per-request identity.

Request bodies keep their required fields Optional so that handlers can answer
with the specific 400 message for each missing field.
"""
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from email_platform.core.security import Permission


class CurrentUser(BaseModel):
    """Identity attached to an authenticated request."""
    model_config = ConfigDict(frozen=True)

    id: int
    organization_id: int
    role: str
    email: str
    permissions: FrozenSet[Permission]

    def has_permission(self, permission: Permission) -> bool:
        return permission in self.permissions


# Auth Schemas
class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    organization_name: Optional[str] = Field(None, alias="organizationName")
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


# Organization Schemas
class OrganizationUpdate(BaseModel):
    name: Optional[str] = None
    plan: Optional[str] = None


# User Schemas
class InviteRequest(BaseModel):
    email: Optional[EmailStr] = None
    role: str = "user"


class AcceptInvitationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")


class RoleUpdate(BaseModel):
    role: Optional[str] = None


# Contact Schemas
class ContactCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    status: Optional[str] = None


class ContactUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    status: Optional[str] = None

"""Pydantic schemas for users and role profiles."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from hub.models.user import UserRole, AccountStatus


class UserProfileIn(BaseModel):
    email: str
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)


class StudentAttributes(BaseModel):
    model_config = ConfigDict(extra="forbid")

    university_name: Optional[str] = None
    specialization: Optional[str] = None
    graduation_year: Optional[int] = Field(default=None, ge=1900, le=2200)
    student_number: Optional[str] = None
    bio: Optional[str] = None


class UniversityAttributes(BaseModel):
    model_config = ConfigDict(extra="forbid")

    institution_name: str = Field(min_length=1)
    website: Optional[str] = None
    address: Optional[str] = None
    accreditation: Optional[str] = None


class CompanyAttributes(BaseModel):
    model_config = ConfigDict(extra="forbid")

    company_name: str = Field(min_length=1)
    industry: Optional[str] = None
    website: Optional[str] = None
    company_size: Optional[str] = None


class AdminAttributes(BaseModel):
    model_config = ConfigDict(extra="forbid")

    department: Optional[str] = None
    permissions: list[str] = []


ROLE_ATTRIBUTE_SCHEMAS: dict[UserRole, type[BaseModel]] = {
    UserRole.STUDENT: StudentAttributes,
    UserRole.UNIVERSITY: UniversityAttributes,
    UserRole.COMPANY: CompanyAttributes,
    UserRole.ADMIN: AdminAttributes,
}


class UserCreate(UserProfileIn):
    role: UserRole
    role_attributes: dict[str, Any] = {}


class AccountStatusUpdate(BaseModel):
    status: AccountStatus


class LoginRequest(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    status: AccountStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RoleProfileOut(BaseModel):
    user_id: str
    role: UserRole
    attributes: dict[str, Any]

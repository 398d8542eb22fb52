"""User and role-profile ORM models.

A user and its role profile form one tagged union: `users.role` is the
polymorphic discriminator and each profile table shares the user's primary
key (joined-table inheritance). Instantiating a profile class writes both rows
in the same flush, and a bare User cannot be persisted.
"""
import enum
import uuid

from sqlalchemy import Column, String, Integer, Text, DateTime, JSON, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func

from hub.database import Base


class UserRole(str, enum.Enum):
    STUDENT = "STUDENT"
    UNIVERSITY = "UNIVERSITY"
    COMPANY = "COMPANY"
    ADMIN = "ADMIN"


class AccountStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    VERIFIED = "VERIFIED"
    SUSPENDED = "SUSPENDED"
    DELETED = "DELETED"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(SAEnum(UserRole, name="user_role"), nullable=False, index=True)
    status = Column(SAEnum(AccountStatus, name="account_status"), nullable=False, default=AccountStatus.ACTIVE)
    login_history = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {
        "polymorphic_on": role,
        "polymorphic_abstract": True,
    }

    # Role-specific column names, overridden by each profile class
    profile_fields = ()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def profile_attributes(self) -> dict:
        return {name: getattr(self, name) for name in self.profile_fields}


class Student(User):
    __tablename__ = "students"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    university_name = Column(String(255), nullable=True, index=True)
    specialization = Column(String(255), nullable=True, index=True)
    graduation_year = Column(Integer, nullable=True, index=True)
    student_number = Column(String(64), nullable=True)
    bio = Column(Text, nullable=True)

    profile_fields = ("university_name", "specialization", "graduation_year", "student_number", "bio")
    __mapper_args__ = {"polymorphic_identity": UserRole.STUDENT}


class University(User):
    __tablename__ = "universities"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    institution_name = Column(String(255), nullable=False, index=True)
    website = Column(String(500), nullable=True)
    address = Column(String(500), nullable=True)
    accreditation = Column(String(255), nullable=True)

    profile_fields = ("institution_name", "website", "address", "accreditation")
    __mapper_args__ = {"polymorphic_identity": UserRole.UNIVERSITY}


class Company(User):
    __tablename__ = "companies"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    company_name = Column(String(255), nullable=False, index=True)
    industry = Column(String(150), nullable=True, index=True)
    website = Column(String(500), nullable=True)
    company_size = Column(String(50), nullable=True)

    profile_fields = ("company_name", "industry", "website", "company_size")
    __mapper_args__ = {"polymorphic_identity": UserRole.COMPANY}


class Admin(User):
    __tablename__ = "admins"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    department = Column(String(150), nullable=True)
    permissions = Column(JSON, nullable=False, default=list)

    profile_fields = ("department", "permissions")
    __mapper_args__ = {"polymorphic_identity": UserRole.ADMIN}


ROLE_PROFILE_CLASSES: dict[UserRole, type[User]] = {
    UserRole.STUDENT: Student,
    UserRole.UNIVERSITY: University,
    UserRole.COMPANY: Company,
    UserRole.ADMIN: Admin,
}

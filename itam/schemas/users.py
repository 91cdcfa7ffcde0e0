import uuid
from datetime import datetime
from typing import Optional
from enum import Enum

from pydantic import BaseModel, EmailStr, field_validator

from ..services.errors import InvalidDomainAccount
from ..services.validation import normalize_domain_account


class Role(str, Enum):
    admin = "Admin"
    ict_officer = "ICT Officer"
    department_hod = "Department HOD"
    end_user = "End User"


def _account(v: Optional[str], label: str) -> Optional[str]:
    if v is None:
        return v
    try:
        return normalize_domain_account(v)
    except InvalidDomainAccount as e:
        raise ValueError(e.message.replace("Domain account", label))


class UserCreate(BaseModel):
    personal_number: str
    name: str
    email: Optional[EmailStr] = None
    password: str
    role: Role = Role.end_user.value
    department: Optional[str] = None

    @field_validator("personal_number")
    @classmethod
    def _personal_number(cls, v: str) -> str:
        return _account(v, "Personal number")

    class Config:
        use_enum_values = True


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    department: Optional[str] = None
    is_active: Optional[bool] = None
    password: Optional[str] = None

    class Config:
        use_enum_values = True


class UserResponse(BaseModel):
    id: uuid.UUID
    personal_number: str
    name: str
    email: Optional[str] = None
    role: str
    department: Optional[str] = None
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserDetailsCreate(BaseModel):
    full_name: str
    domain_account: str
    location: Optional[str] = None
    department: Optional[str] = None
    section: Optional[str] = None

    @field_validator("domain_account")
    @classmethod
    def _domain_account(cls, v: str) -> str:
        return _account(v, "Domain account")


class UserDetailsUpdate(BaseModel):
    full_name: Optional[str] = None
    domain_account: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    section: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("domain_account")
    @classmethod
    def _domain_account(cls, v: Optional[str]) -> Optional[str]:
        return _account(v, "Domain account")


class UserDetailsResponse(BaseModel):
    id: uuid.UUID
    full_name: str
    domain_account: str
    location: Optional[str] = None
    department: Optional[str] = None
    section: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

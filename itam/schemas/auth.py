from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..services.errors import InvalidDomainAccount
from ..services.validation import normalize_domain_account


class LoginRequest(BaseModel):
    personal_number: str  # K12345678 | T12345678
    password: str

    @field_validator("personal_number")
    @classmethod
    def _personal_number(cls, v: str) -> str:
        try:
            return normalize_domain_account(v)
        except InvalidDomainAccount as e:
            raise ValueError(e.message.replace("Domain account", "Personal number"))


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    id: str
    personal_number: str
    name: str
    email: Optional[str] = None
    role: str
    department: Optional[str] = None
    last_login_at: Optional[datetime] = None


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=1)

import re
from typing import Optional

from .errors import InvalidDomainAccount, ValidationFailed


# One letter from {K, T} followed by exactly 8 digits
DOMAIN_ACCOUNT_RE = re.compile(r"^[KT]\d{8}$")


def normalize_domain_account(value: Optional[str]) -> str:
    """Trim and upper-case a domain account / personal number, rejecting bad formats."""
    candidate = (value or "").strip().upper()
    if not candidate:
        raise InvalidDomainAccount("Domain account is required")
    if not DOMAIN_ACCOUNT_RE.match(candidate):
        raise InvalidDomainAccount(
            "Domain account must start with K or T followed by 8 digits (e.g., K12345678)"
        )
    return candidate


def is_valid_domain_account(value: Optional[str]) -> bool:
    try:
        normalize_domain_account(value)
    except InvalidDomainAccount:
        return False
    return True


def validate_password(password: Optional[str], min_length: int) -> str:
    if not password:
        raise ValidationFailed("Password is required")
    if len(password) < min_length:
        raise ValidationFailed(f"Password must be at least {min_length} characters long")
    return password


def clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None

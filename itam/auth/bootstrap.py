from typing import Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import User
from ..services.audit import create_audit_log
from ..services.validation import normalize_domain_account, validate_password
from .security import ADMIN, get_password_hash

logger = structlog.get_logger(__name__)


def ensure_admin_user(
    db: Session,
    personal_number: str,
    password: str,
    name: str = "System Administrator",
    min_password_length: int = 6,
) -> Optional[User]:
    """Create the first Admin account when the users table is empty."""
    if db.query(User).first() is not None:
        return None
    personal_number = normalize_domain_account(personal_number)
    validate_password(password, min_password_length)
    user = User(
        personal_number=personal_number,
        name=name,
        password_hash=get_password_hash(password),
        role=ADMIN,
        department="ICT",
        is_active=True,
    )
    db.add(user)
    db.flush()
    create_audit_log(
        db,
        entity_type="user",
        entity_id=user.id,
        action="User Created",
        details=f"Bootstrap administrator {personal_number} created",
        new_values={"personal_number": personal_number, "role": ADMIN},
    )
    db.commit()
    logger.info("admin_user_seeded", personal_number=personal_number)
    return user

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..auth.security import get_current_user, get_password_hash, require_admin, require_officer
from ..models.models import User, UserDetails
from ..schemas.users import (
    UserCreate,
    UserUpdate,
    UserResponse,
    UserDetailsCreate,
    UserDetailsUpdate,
    UserDetailsResponse,
)
from ..services.audit import create_audit_log
from ..services.validation import validate_password

router = APIRouter(prefix="/users", tags=["users"])
directory_router = APIRouter(prefix="/user-details", tags=["user-details"])


def _user_view(user: User) -> dict:
    return {
        "personal_number": user.personal_number,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "department": user.department,
        "is_active": user.is_active,
    }


@router.get("", response_model=List[UserResponse])
def list_users(
    role: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if search:
        search_term = f"%{search}%"
        query = query.filter(or_(User.name.ilike(search_term), User.personal_number.ilike(search_term)))
    return query.order_by(User.name.asc()).all()


@router.post("", response_model=UserResponse, status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    validate_password(payload.password, settings.min_password_length)
    if db.query(User).filter(User.personal_number == payload.personal_number).first():
        raise HTTPException(status_code=409, detail=f"User {payload.personal_number} already exists")
    if payload.email and db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(status_code=409, detail="Email already in use")
    user = User(
        personal_number=payload.personal_number,
        name=payload.name.strip(),
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        role=payload.role,
        department=payload.department,
        is_active=True,
    )
    db.add(user)
    db.flush()
    create_audit_log(
        db,
        entity_type="user",
        entity_id=user.id,
        action="User Created",
        actor=admin,
        details=f"User {user.personal_number} ({user.role}) created",
        new_values=_user_view(user),
    )
    db.commit()
    db.refresh(user)
    return user


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    data = payload.dict(exclude_unset=True)
    if user.id == admin.id and (data.get("is_active") is False or data.get("role", user.role) != user.role):
        raise HTTPException(status_code=400, detail="You cannot demote or deactivate your own account")

    before = _user_view(user)
    password = data.pop("password", None)
    if password is not None:
        validate_password(password, settings.min_password_length)
        user.password_hash = get_password_hash(password)
    for key, value in data.items():
        setattr(user, key, value)
    after = _user_view(user)
    changed = {k: v for k, v in after.items() if v != before[k]}
    if password is not None:
        changed["password"] = "reset"
    create_audit_log(
        db,
        entity_type="user",
        entity_id=user.id,
        action="User Updated",
        actor=admin,
        details=f"User {user.personal_number} updated",
        old_values={k: before[k] for k in changed if k in before},
        new_values=changed,
    )
    db.commit()
    db.refresh(user)
    return user


# ---------- Holder directory ----------

@directory_router.get("", response_model=List[UserDetailsResponse])
def list_user_details(
    search: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    query = db.query(UserDetails)
    if not include_inactive:
        query = query.filter(UserDetails.is_active == True)  # noqa: E712
    if department:
        query = query.filter(UserDetails.department == department)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(UserDetails.full_name.ilike(search_term), UserDetails.domain_account.ilike(search_term))
        )
    return query.order_by(UserDetails.full_name.asc()).limit(500).all()


@directory_router.get("/{domain_account}", response_model=UserDetailsResponse)
def get_user_details(domain_account: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    entry = db.query(UserDetails).filter(UserDetails.domain_account == domain_account.strip().upper()).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Directory entry not found")
    return entry


@directory_router.post("", response_model=UserDetailsResponse, status_code=201)
def create_user_details(
    payload: UserDetailsCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_officer),
):
    if db.query(UserDetails).filter(UserDetails.domain_account == payload.domain_account).first():
        raise HTTPException(status_code=409, detail=f"Domain account {payload.domain_account} already exists")
    entry = UserDetails(**payload.dict())
    db.add(entry)
    db.flush()
    create_audit_log(
        db,
        entity_type="user_details",
        entity_id=entry.id,
        action="Directory Entry Created",
        actor=user,
        details=f"{entry.full_name} ({entry.domain_account}) added to the directory",
        new_values=payload.dict(),
    )
    db.commit()
    db.refresh(entry)
    return entry


@directory_router.patch("/{entry_id}", response_model=UserDetailsResponse)
def update_user_details(
    entry_id: uuid.UUID,
    payload: UserDetailsUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_officer),
):
    entry = db.query(UserDetails).filter(UserDetails.id == entry_id).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Directory entry not found")
    data = payload.dict(exclude_unset=True)
    if data.get("domain_account") and data["domain_account"] != entry.domain_account:
        taken = db.query(UserDetails).filter(
            UserDetails.domain_account == data["domain_account"], UserDetails.id != entry.id
        ).first()
        if taken:
            raise HTTPException(status_code=409, detail=f"Domain account {data['domain_account']} already exists")
    before = {k: getattr(entry, k) for k in data}
    for key, value in data.items():
        setattr(entry, key, value)
    entry.updated_at = datetime.now(timezone.utc)
    create_audit_log(
        db,
        entity_type="user_details",
        entity_id=entry.id,
        action="Directory Entry Deactivated" if data.get("is_active") is False else "Directory Entry Updated",
        actor=user,
        details=f"Directory entry {entry.domain_account} updated",
        old_values=before,
        new_values=data,
    )
    db.commit()
    db.refresh(entry)
    return entry

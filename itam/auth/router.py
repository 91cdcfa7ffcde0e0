import uuid
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..config import settings
from ..models.models import User
from ..schemas.auth import (
    LoginRequest,
    RefreshRequest,
    TokenResponse,
    MeResponse,
    PasswordChangeRequest,
)
from ..services.audit import create_audit_log
from ..services.validation import validate_password
from .security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
)


router = APIRouter(prefix="/auth", tags=["auth"])
logger = structlog.get_logger(__name__)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    validate_password(req.password, settings.min_password_length)
    user = db.query(User).filter(User.personal_number == req.personal_number).first()
    if not user or not verify_password(req.password, user.password_hash):
        logger.warning("login_failed", personal_number=req.personal_number)
        raise HTTPException(status_code=401, detail="Invalid personal number or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")
    access = create_access_token(str(user.id), roles=[user.role])
    refresh = create_refresh_token(str(user.id))
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("login_succeeded", user_id=str(user.id))
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.post("/refresh", response_model=TokenResponse)
def refresh(req: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(req.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=400, detail="Invalid refresh token")
    user = db.query(User).filter(User.id == uuid.UUID(payload["sub"])).first()
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not active")
    access = create_access_token(str(user.id), roles=[user.role])
    refresh_token = create_refresh_token(str(user.id))
    return TokenResponse(access_token=access, refresh_token=refresh_token)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(
        id=str(user.id),
        personal_number=user.personal_number,
        name=user.name,
        email=user.email,
        role=user.role,
        department=user.department,
        last_login_at=user.last_login_at,
    )


@router.post("/password")
def change_password(req: PasswordChangeRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    if not verify_password(req.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    validate_password(req.new_password, settings.min_password_length)
    user.password_hash = get_password_hash(req.new_password)
    create_audit_log(
        db,
        entity_type="user",
        entity_id=user.id,
        action="Password Changed",
        actor=user,
        details=f"{user.name} changed their password",
    )
    db.commit()
    return {"status": "ok"}

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..auth.security import get_current_user, require_officer
from ..documents.movement_form import build_movement_form_pdf
from ..models.models import LifecycleAction, User
from ..schemas.lifecycle import (
    ActionStatus,
    ActionType,
    LifecycleActionCreate,
    LifecycleActionResponse,
    MovementFormLink,
)
from ..services.lifecycle import (
    Ownership,
    TransitionRequest,
    apply_lifecycle_action,
    complete_lifecycle_action,
)
from ..services.movement_forms import attach_movement_form, movement_form_url
from ..storage.provider import StorageProvider
from .files import get_storage

router = APIRouter(prefix="/lifecycle", tags=["lifecycle"])


def _get_action(db: Session, action_id: uuid.UUID) -> LifecycleAction:
    action = db.query(LifecycleAction).filter(LifecycleAction.id == action_id).first()
    if not action:
        raise HTTPException(status_code=404, detail="Lifecycle action not found")
    return action


@router.get("/actions", response_model=List[LifecycleActionResponse])
def list_actions(
    action_type: Optional[ActionType] = Query(None),
    status: Optional[ActionStatus] = Query(None),
    serial: Optional[str] = Query(None),
    limit: int = Query(200, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    query = db.query(LifecycleAction)
    if action_type:
        query = query.filter(LifecycleAction.action_type == action_type.value)
    if status:
        query = query.filter(LifecycleAction.status == status.value)
    if serial:
        query = query.filter(
            or_(
                LifecycleAction.primary_asset_serial == serial,
                LifecycleAction.secondary_asset_serial == serial,
            )
        )
    return query.order_by(LifecycleAction.request_date.desc()).limit(limit).offset(offset).all()


@router.get("/actions/{action_id}", response_model=LifecycleActionResponse)
def get_action(action_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return _get_action(db, action_id)


@router.post("/actions", response_model=LifecycleActionResponse, status_code=201)
def create_action(
    payload: LifecycleActionCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_officer),
):
    """Validate and apply a lifecycle action; the record starts as Pending"""
    request = TransitionRequest(
        action_type=payload.action_type,
        deployment_type=payload.deployment_type,
        primary_asset_serial=payload.primary_asset_serial,
        secondary_asset_serial=payload.secondary_asset_serial,
        asset_pair_type=payload.asset_pair_type,
        to=Ownership(
            holder=payload.to_holder,
            domain_account=payload.to_domain_account,
            location=payload.to_location,
            department=payload.to_department,
            section=payload.to_section,
        ),
        comments=payload.comments,
    )
    return apply_lifecycle_action(db, request, user)


@router.post("/actions/{action_id}/complete", response_model=LifecycleActionResponse)
def complete_action(action_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(require_officer)):
    return complete_lifecycle_action(db, action_id, user)


@router.post("/actions/{action_id}/movement-form", response_model=LifecycleActionResponse)
async def upload_movement_form(
    action_id: uuid.UUID,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(require_officer),
    storage: StorageProvider = Depends(get_storage),
):
    # Read one byte past the limit so oversize files are detected without loading everything
    data = await file.read(settings.movement_form_max_bytes + 1)
    return attach_movement_form(
        db,
        storage,
        action_id,
        data,
        user,
        content_type=file.content_type,
        filename=file.filename,
    )


@router.get("/actions/{action_id}/movement-form", response_model=MovementFormLink)
def get_movement_form(
    action_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    action = _get_action(db, action_id)
    url = movement_form_url(storage, action)
    return MovementFormLink(
        action_id=action.id,
        path=action.movement_form_path,
        url=url,
        expires_in=settings.signed_url_ttl_seconds,
    )


@router.get("/actions/{action_id}/movement-form/printable")
def printable_movement_form(action_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    """Pre-filled movement form to print and sign"""
    action = _get_action(db, action_id)
    pdf = build_movement_form_pdf(action)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="movement-form-{action.id}.pdf"'},
    )

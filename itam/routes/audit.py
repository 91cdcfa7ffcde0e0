import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user
from ..models.models import AuditLog
from ..schemas.audit import AuditLogResponse, AuditVerifyResponse
from ..services.audit import get_audit_logs, verify_audit_log

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=List[AuditLogResponse])
def list_audit_logs(
    asset_serial: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[uuid.UUID] = Query(None),
    action: Optional[str] = Query(None),
    actor_id: Optional[uuid.UUID] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(100, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """Audit trail, newest first"""
    return get_audit_logs(
        db,
        asset_serial=asset_serial,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )


@router.get("/{log_id}", response_model=AuditLogResponse)
def get_audit_log(log_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    entry = db.query(AuditLog).filter(AuditLog.id == log_id).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Audit entry not found")
    return entry


@router.get("/{log_id}/verify", response_model=AuditVerifyResponse)
def verify_entry(log_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    entry = db.query(AuditLog).filter(AuditLog.id == log_id).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Audit entry not found")
    return AuditVerifyResponse(id=entry.id, valid=verify_audit_log(entry))

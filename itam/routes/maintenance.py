import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_officer
from ..models.models import Asset, AssetReplacement, MaintenanceTicket, User
from ..schemas.assets import AssetResponse
from ..schemas.maintenance import (
    AssetReplacementResponse,
    MaintenanceResolve,
    MaintenanceTicketCreate,
    MaintenanceTicketResponse,
    MaintenanceTicketUpdate,
    TicketPriority,
    TicketStatus,
)
from ..services import maintenance as maintenance_service

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.get("/tickets", response_model=List[MaintenanceTicketResponse])
def list_tickets(
    status: Optional[TicketStatus] = Query(None),
    priority: Optional[TicketPriority] = Query(None),
    serial: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    query = db.query(MaintenanceTicket)
    if status:
        query = query.filter(MaintenanceTicket.status == status.value)
    if priority:
        query = query.filter(MaintenanceTicket.priority == priority.value)
    if serial:
        query = query.filter(MaintenanceTicket.asset_serial == serial)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                MaintenanceTicket.title.ilike(search_term),
                MaintenanceTicket.asset_serial.ilike(search_term),
                MaintenanceTicket.assigned_to.ilike(search_term),
            )
        )
    return query.order_by(MaintenanceTicket.date_received.desc()).limit(500).all()


@router.get("/tickets/{ticket_id}", response_model=MaintenanceTicketResponse)
def get_ticket(ticket_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    ticket = db.query(MaintenanceTicket).filter(MaintenanceTicket.id == ticket_id).first()
    if not ticket:
        raise HTTPException(status_code=404, detail="Maintenance ticket not found")
    return ticket


@router.post("/tickets", response_model=MaintenanceTicketResponse, status_code=201)
def open_ticket(payload: MaintenanceTicketCreate, db: Session = Depends(get_db), user: User = Depends(require_officer)):
    return maintenance_service.open_ticket(db, payload.dict(), user)


@router.patch("/tickets/{ticket_id}", response_model=MaintenanceTicketResponse)
def update_ticket(
    ticket_id: uuid.UUID,
    payload: MaintenanceTicketUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_officer),
):
    return maintenance_service.update_ticket(db, ticket_id, payload.dict(exclude_unset=True), user)


@router.post("/tickets/{ticket_id}/resolve", response_model=MaintenanceTicketResponse)
def resolve_ticket(
    ticket_id: uuid.UUID,
    payload: MaintenanceResolve,
    db: Session = Depends(get_db),
    user: User = Depends(require_officer),
):
    request = maintenance_service.ResolutionRequest(**payload.dict())
    return maintenance_service.resolve_ticket(db, ticket_id, request, user)


@router.get("/tickets/{ticket_id}/replacement-candidates", response_model=List[AssetResponse])
def replacement_candidates(ticket_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    """In Store assets of the same type as the ticket's asset"""
    ticket = db.query(MaintenanceTicket).filter(MaintenanceTicket.id == ticket_id).first()
    if not ticket:
        raise HTTPException(status_code=404, detail="Maintenance ticket not found")
    asset_type = ticket.asset_type
    if not asset_type and ticket.asset_id:
        asset = db.query(Asset).filter(Asset.id == ticket.asset_id).first()
        asset_type = asset.asset_type if asset else None
    if not asset_type:
        return []
    return maintenance_service.replacement_candidates(db, asset_type, exclude_serial=ticket.asset_serial)


@router.get("/replacements", response_model=List[AssetReplacementResponse])
def list_replacements(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return db.query(AssetReplacement).order_by(AssetReplacement.replacement_date.desc()).limit(500).all()

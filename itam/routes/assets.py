import uuid
from typing import List, Optional
from sqlalchemy import or_

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user, require_admin, require_officer
from ..models.models import Asset, AssetPair, LifecycleAction, MaintenanceTicket, AssetReplacement, User
from ..schemas.assets import (
    AssetCreate,
    AssetUpdate,
    AssetResponse,
    AssetPairResponse,
    AssetStatus,
    AssetType,
)
from ..schemas.lifecycle import LifecycleActionResponse
from ..schemas.maintenance import MaintenanceTicketResponse, AssetReplacementResponse
from ..services import assets as asset_service
from ..services.lifecycle import unpair

router = APIRouter(prefix="/assets", tags=["assets"])
pairs_router = APIRouter(prefix="/pairs", tags=["pairs"])


@router.get("", response_model=List[AssetResponse])
def list_assets(
    asset_type: Optional[AssetType] = Query(None),
    status: Optional[AssetStatus] = Query(None),
    department: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(500, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """List assets with filters"""
    query = db.query(Asset)

    if asset_type:
        query = query.filter(Asset.asset_type == asset_type.value)
    if status:
        query = query.filter(Asset.status == status.value)
    if department:
        query = query.filter(Asset.department == department)
    if location:
        query = query.filter(Asset.location == location)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Asset.serial_number.ilike(search_term),
                Asset.brand.ilike(search_term),
                Asset.model.ilike(search_term),
                Asset.holder.ilike(search_term),
            )
        )

    return query.order_by(Asset.created_at.desc()).limit(limit).offset(offset).all()


@router.get("/by-serial/{serial_number}", response_model=AssetResponse)
def get_asset_by_serial(serial_number: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    asset = db.query(Asset).filter(Asset.serial_number == serial_number.strip()).first()
    if not asset:
        raise HTTPException(status_code=404, detail=f"Asset {serial_number} not found")
    return asset


@router.get("/{asset_id}", response_model=AssetResponse)
def get_asset(asset_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    asset = db.query(Asset).filter(Asset.id == asset_id).first()
    if not asset:
        raise HTTPException(status_code=404, detail="Asset not found")
    return asset


@router.get("/{asset_id}/history", response_model=List[LifecycleActionResponse])
def get_asset_history(asset_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    """Lifecycle actions that involved the asset, newest first"""
    asset = db.query(Asset).filter(Asset.id == asset_id).first()
    if not asset:
        raise HTTPException(status_code=404, detail="Asset not found")
    return db.query(LifecycleAction).filter(
        or_(
            LifecycleAction.primary_asset_serial == asset.serial_number,
            LifecycleAction.secondary_asset_serial == asset.serial_number,
        )
    ).order_by(LifecycleAction.request_date.desc()).all()


@router.get("/{asset_id}/maintenance", response_model=List[MaintenanceTicketResponse])
def get_asset_maintenance(asset_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return db.query(MaintenanceTicket).filter(
        MaintenanceTicket.asset_id == asset_id
    ).order_by(MaintenanceTicket.date_received.desc()).all()


@router.get("/{asset_id}/replacements", response_model=List[AssetReplacementResponse])
def get_asset_replacements(asset_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return db.query(AssetReplacement).filter(
        or_(
            AssetReplacement.original_asset_id == asset_id,
            AssetReplacement.replacement_asset_id == asset_id,
        )
    ).order_by(AssetReplacement.replacement_date.desc()).all()


@router.post("", response_model=AssetResponse, status_code=201)
def create_asset(payload: AssetCreate, db: Session = Depends(get_db), user: User = Depends(require_officer)):
    return asset_service.create_asset(db, payload.dict(), user)


@router.patch("/{asset_id}", response_model=AssetResponse)
def update_asset(
    asset_id: uuid.UUID,
    payload: AssetUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_officer),
):
    return asset_service.update_asset(db, asset_id, payload.dict(exclude_unset=True), user)


@router.post("/{asset_id}/dispose", response_model=AssetResponse)
def dispose_asset(asset_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    return asset_service.dispose_asset(db, asset_id, user)


@router.delete("/{asset_id}")
def delete_asset(asset_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(require_admin)):
    asset_service.delete_asset(db, asset_id, user)
    return {"status": "ok"}


# ---------- Pairs ----------

@pairs_router.get("", response_model=List[AssetPairResponse])
def list_pairs(
    is_deployed: Optional[bool] = Query(None),
    pair_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    query = db.query(AssetPair)
    if is_deployed is not None:
        query = query.filter(AssetPair.is_deployed == is_deployed)
    if pair_type:
        query = query.filter(AssetPair.pair_type == pair_type)
    return query.order_by(AssetPair.created_at.desc()).all()


@pairs_router.get("/{pair_id}", response_model=AssetPairResponse)
def get_pair(pair_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    pair = db.query(AssetPair).filter(AssetPair.id == pair_id).first()
    if not pair:
        raise HTTPException(status_code=404, detail="Asset pair not found")
    return pair


@pairs_router.delete("/{pair_id}")
def dissolve_pair(pair_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(require_officer)):
    unpair(db, pair_id, user)
    return {"status": "ok"}

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..models.models import Asset, User
from .audit import compute_diff, create_audit_log
from .errors import AssetInUse, ConcurrentModification, DuplicateSerial, IneligibleStatus, NotFound, ValidationFailed
from .lifecycle import ACTIVE, DISPOSED, IN_STORE, OBSOLETE, apply_ownership, custodian_ownership, ownership_of
from .validation import clean_text

logger = structlog.get_logger(__name__)


ASSET_TYPES = (
    "PC", "Laptop", "VDI", "Monitor", "CPU", "VDI Receiver",
    "Printer", "Router", "Switch", "IP Phone",
)
ASSET_STATUSES = (ACTIVE, IN_STORE, "Under Maintenance", OBSOLETE, DISPOSED)

# Status and ownership only change through lifecycle actions and maintenance
EDITABLE_FIELDS = ("asset_type", "serial_number", "brand", "model", "section")


def _serial_taken(db: Session, serial: str, exclude_id: uuid.UUID = None) -> bool:
    query = db.query(Asset.id).filter(Asset.serial_number == serial)
    if exclude_id is not None:
        query = query.filter(Asset.id != exclude_id)
    return query.first() is not None


def _check_type(asset_type: str) -> str:
    if asset_type not in ASSET_TYPES:
        raise ValidationFailed(f"Asset type must be one of {', '.join(ASSET_TYPES)}")
    return asset_type


def get_asset(db: Session, asset_id: uuid.UUID) -> Asset:
    asset = db.query(Asset).filter(Asset.id == asset_id).first()
    if not asset:
        raise NotFound("Asset not found")
    return asset


def snapshot(asset: Asset) -> Dict[str, Any]:
    return {
        "asset_type": asset.asset_type,
        "serial_number": asset.serial_number,
        "brand": asset.brand,
        "model": asset.model,
        "status": asset.status,
        **ownership_of(asset).as_dict(),
    }


def create_asset(db: Session, data: Dict[str, Any], actor: User) -> Asset:
    """Register a new asset at the ICT store."""
    serial = (data.get("serial_number") or "").strip()
    if not serial:
        raise ValidationFailed("Serial number is required")
    asset_type = _check_type(data.get("asset_type"))
    if _serial_taken(db, serial):
        raise DuplicateSerial(f"Asset with serial number {serial} already exists")

    asset = Asset(
        asset_type=asset_type,
        serial_number=serial,
        brand=clean_text(data.get("brand")),
        model=clean_text(data.get("model")),
        status=IN_STORE,
        created_by=actor.id,
    )
    apply_ownership(asset, custodian_ownership())
    try:
        db.add(asset)
        db.flush()
        create_audit_log(
            db,
            entity_type="asset",
            entity_id=asset.id,
            asset_serial=serial,
            action="Asset Created",
            actor=actor,
            details=f"New {asset_type} registered: {serial}",
            new_values=snapshot(asset),
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateSerial(f"Asset with serial number {serial} already exists")
    except Exception:
        db.rollback()
        raise
    db.refresh(asset)
    logger.info("asset_created", asset_id=str(asset.id), serial=serial, asset_type=asset_type)
    return asset


def update_asset(db: Session, asset_id: uuid.UUID, changes: Dict[str, Any], actor: User) -> Asset:
    asset = get_asset(db, asset_id)
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationFailed(f"Fields cannot be edited here: {', '.join(sorted(unknown))}")

    if "asset_type" in changes:
        _check_type(changes["asset_type"])
        if changes["asset_type"] != asset.asset_type and asset.pair_id is not None:
            raise IneligibleStatus("The type of a paired asset cannot be changed")
    if "serial_number" in changes:
        serial = (changes["serial_number"] or "").strip()
        if not serial:
            raise ValidationFailed("Serial number is required")
        if _serial_taken(db, serial, exclude_id=asset.id):
            raise DuplicateSerial(f"Asset with serial number {serial} already exists")
        changes = {**changes, "serial_number": serial}

    before = snapshot(asset)
    try:
        for key, value in changes.items():
            setattr(asset, key, clean_text(value) if key in ("brand", "model", "section") else value)
        asset.updated_at = datetime.now(timezone.utc)
        diff = compute_diff(before, snapshot(asset))
        if diff:
            create_audit_log(
                db,
                entity_type="asset",
                entity_id=asset.id,
                asset_serial=asset.serial_number,
                action="Asset Updated",
                actor=actor,
                details=f"Asset {asset.serial_number} updated: {', '.join(sorted(diff))}",
                old_values={k: v["before"] for k, v in diff.items()},
                new_values={k: v["after"] for k, v in diff.items()},
            )
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrentModification("Asset was modified by another request; reload and try again")
    except IntegrityError:
        db.rollback()
        raise DuplicateSerial(f"Asset with serial number {changes.get('serial_number')} already exists")
    except Exception:
        db.rollback()
        raise
    db.refresh(asset)
    return asset


def dispose_asset(db: Session, asset_id: uuid.UUID, actor: User) -> Asset:
    asset = get_asset(db, asset_id)
    if asset.status != OBSOLETE:
        raise IneligibleStatus(f"Asset {asset.serial_number} is {asset.status}; only Obsolete assets can be disposed")
    try:
        asset.status = DISPOSED
        asset.updated_at = datetime.now(timezone.utc)
        create_audit_log(
            db,
            entity_type="asset",
            entity_id=asset.id,
            asset_serial=asset.serial_number,
            action="Asset Disposed",
            actor=actor,
            details=f"Asset {asset.serial_number} disposed",
            old_values={"status": OBSOLETE},
            new_values={"status": DISPOSED},
        )
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrentModification("Asset was modified by another request; reload and try again")
    except Exception:
        db.rollback()
        raise
    db.refresh(asset)
    logger.info("asset_disposed", asset_id=str(asset.id), serial=asset.serial_number)
    return asset


def delete_asset(db: Session, asset_id: uuid.UUID, actor: User) -> None:
    asset = get_asset(db, asset_id)
    if asset.status == ACTIVE:
        raise AssetInUse(f"Asset {asset.serial_number} is in use and cannot be deleted")
    if asset.pair_id is not None:
        raise IneligibleStatus(f"Asset {asset.serial_number} is part of a pair; unpair it first")
    serial = asset.serial_number
    try:
        create_audit_log(
            db,
            entity_type="asset",
            entity_id=asset.id,
            asset_serial=serial,
            action="Asset Deleted",
            actor=actor,
            details=f"Asset {serial} deleted",
            old_values=snapshot(asset),
        )
        db.delete(asset)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("asset_deleted", serial=serial)

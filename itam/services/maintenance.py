"""
Maintenance tickets: opening, status progression and resolution.

Resolution may declare the asset obsolete and deploy a replacement in its
place. Asset rows, pair row, ticket, replacement record and audit entries
are committed together.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..models.models import Asset, AssetPair, AssetReplacement, MaintenanceTicket, User
from .audit import create_audit_log
from .errors import ConcurrentModification, IneligibleStatus, NotFound, ValidationFailed
from .lifecycle import (
    ACTIVE,
    IN_STORE,
    OBSOLETE,
    UNDER_MAINTENANCE,
    apply_ownership,
    ownership_of,
)
from .validation import clean_text

logger = structlog.get_logger(__name__)


OPEN = "Open"
IN_PROGRESS = "In Progress"
RESOLVED = "Resolved"
CLOSED = "Closed"

TICKET_TRANSITIONS = {
    OPEN: {IN_PROGRESS, RESOLVED},
    IN_PROGRESS: {RESOLVED},
    RESOLVED: {CLOSED},
    CLOSED: set(),
}

PRIORITIES = ("Low", "Medium", "High", "Critical")
CATEGORIES = ("Hardware", "Software", "Network", "Replacement")

# Only these may go under maintenance; the ticket remembers which one it was.
# In Store assets are accepted too and go back to In Store on resolution
# instead of always coming back Active.
SERVICEABLE_STATUSES = (ACTIVE, IN_STORE)

EDITABLE_FIELDS = ("title", "description", "priority", "category", "assigned_to", "reported_by", "cost")


@dataclass(frozen=True)
class ResolutionRequest:
    resolution: str
    is_obsolete: bool = False
    obsolete_reason: Optional[str] = None
    requires_replacement: bool = False
    replacement_asset_serial: Optional[str] = None
    cost: Optional[Decimal] = None


def check_ticket_transition(current: str, target: str) -> None:
    if target not in TICKET_TRANSITIONS:
        raise ValidationFailed(f"Unknown ticket status: {target}")
    if target not in TICKET_TRANSITIONS.get(current, set()):
        raise IneligibleStatus(f"Ticket cannot move from {current} to {target}")


def _get_ticket(db: Session, ticket_id: uuid.UUID) -> MaintenanceTicket:
    ticket = db.query(MaintenanceTicket).filter(MaintenanceTicket.id == ticket_id).first()
    if not ticket:
        raise NotFound("Maintenance ticket not found")
    return ticket


def _asset_state(asset: Asset) -> Dict[str, Any]:
    return {"status": asset.status, "pair_id": str(asset.pair_id) if asset.pair_id else None, **ownership_of(asset).as_dict()}


def _ticket_fields(ticket: MaintenanceTicket) -> Dict[str, Any]:
    values = {k: getattr(ticket, k) for k in EDITABLE_FIELDS + ("status",)}
    if values["cost"] is not None:
        values["cost"] = float(values["cost"])
    return values


def open_ticket(db: Session, data: Dict[str, Any], actor: User) -> MaintenanceTicket:
    serial = (data.get("asset_serial") or "").strip()
    title = clean_text(data.get("title"))
    if not serial:
        raise ValidationFailed("Asset serial number is required")
    if not title:
        raise ValidationFailed("Ticket title is required")
    priority = data.get("priority") or "Medium"
    if priority not in PRIORITIES:
        raise ValidationFailed(f"Priority must be one of {', '.join(PRIORITIES)}")
    category = data.get("category")
    if category and category not in CATEGORIES:
        raise ValidationFailed(f"Category must be one of {', '.join(CATEGORIES)}")

    try:
        asset = db.query(Asset).filter(Asset.serial_number == serial).with_for_update().first()
        if not asset:
            raise NotFound(f"Asset {serial} not found")
        if asset.status not in SERVICEABLE_STATUSES:
            raise IneligibleStatus(
                f"Asset {serial} is {asset.status}; only Active or In Store assets can go under maintenance"
            )

        now = datetime.now(timezone.utc)
        ticket = MaintenanceTicket(
            asset_id=asset.id,
            asset_serial=asset.serial_number,
            asset_type=asset.asset_type,
            title=title,
            description=clean_text(data.get("description")),
            priority=priority,
            status=OPEN,
            category=category,
            reported_by=clean_text(data.get("reported_by")) or actor.name,
            assigned_to=clean_text(data.get("assigned_to")),
            date_received=data.get("date_received") or now,
            cost=data.get("cost"),
            asset_status_before=asset.status,
            created_by=actor.id,
        )
        db.add(ticket)

        old_status = asset.status
        asset.status = UNDER_MAINTENANCE
        asset.updated_at = now
        db.flush()

        create_audit_log(
            db,
            entity_type="maintenance_ticket",
            entity_id=ticket.id,
            asset_serial=asset.serial_number,
            action="Maintenance Ticket Created",
            actor=actor,
            details=f"Maintenance ticket created: {title}",
            old_values={"status": old_status},
            new_values={"status": UNDER_MAINTENANCE, "ticket_status": OPEN, "priority": priority},
            context={"ticket_id": str(ticket.id)},
        )
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrentModification("Asset was modified by another request; reload and try again")
    except Exception:
        db.rollback()
        logger.warning("maintenance_ticket_rejected", serial=serial)
        raise

    db.refresh(ticket)
    logger.info("maintenance_ticket_opened", ticket_id=str(ticket.id), serial=ticket.asset_serial)
    return ticket


def update_ticket(db: Session, ticket_id: uuid.UUID, changes: Dict[str, Any], actor: User) -> MaintenanceTicket:
    """Edit descriptive fields and/or move the ticket to In Progress or Closed."""
    ticket = _get_ticket(db, ticket_id)

    target = changes.get("status")
    if target is not None and target != ticket.status:
        if target == RESOLVED:
            raise ValidationFailed("Use the resolve operation to resolve a ticket")
        check_ticket_transition(ticket.status, target)
    if ticket.status == CLOSED:
        raise IneligibleStatus("Closed tickets cannot be changed")
    if "priority" in changes and changes["priority"] not in PRIORITIES:
        raise ValidationFailed(f"Priority must be one of {', '.join(PRIORITIES)}")
    if changes.get("category") and changes["category"] not in CATEGORIES:
        raise ValidationFailed(f"Category must be one of {', '.join(CATEGORIES)}")

    before = _ticket_fields(ticket)
    try:
        for key in EDITABLE_FIELDS:
            if key in changes:
                setattr(ticket, key, changes[key])
        if target is not None:
            ticket.status = target
        ticket.updated_at = datetime.now(timezone.utc)
        after = _ticket_fields(ticket)
        diff = {k: v for k, v in after.items() if v != before[k]}
        create_audit_log(
            db,
            entity_type="maintenance_ticket",
            entity_id=ticket.id,
            asset_serial=ticket.asset_serial,
            action="Maintenance Status Updated" if "status" in diff else "Maintenance Ticket Updated",
            actor=actor,
            details=f"Ticket {ticket.title} updated",
            old_values={k: before[k] for k in diff},
            new_values=diff,
            context={"ticket_id": str(ticket.id)},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ticket)
    return ticket


def _swap_into_pair(db: Session, original: Asset, replacement: Optional[Asset]) -> Optional[AssetPair]:
    """Take an obsolete asset out of its pair; the replacement, if any, fills its slot."""
    if original.pair_id is None:
        return None
    pair = db.query(AssetPair).filter(AssetPair.id == original.pair_id).with_for_update().first()
    original.pair_id = None
    if pair is None:
        return None

    if replacement is not None:
        if pair.primary_asset_id == original.id:
            pair.primary_asset_id = replacement.id
        else:
            pair.secondary_asset_id = replacement.id
        replacement.pair_id = pair.id
        pair.updated_at = datetime.now(timezone.utc)
        return pair

    # Nothing takes the slot: the pair is dissolved and the partner stays deployed on its own
    for partner in db.query(Asset).filter(Asset.pair_id == pair.id, Asset.id != original.id).all():
        partner.pair_id = None
    db.flush()
    db.delete(pair)
    return pair


def resolve_ticket(db: Session, ticket_id: uuid.UUID, request: ResolutionRequest, actor: User) -> MaintenanceTicket:
    """
    Resolve a ticket.

    Not obsolete: the asset goes back to the status it had when the ticket
    was opened. Obsolete: the asset becomes Obsolete and leaves its pair; with
    a replacement, the replacement inherits the original's holder fields,
    becomes Active and takes its place in the pair.
    """
    resolution = clean_text(request.resolution)
    if not resolution:
        raise ValidationFailed("Resolution is required")
    if request.is_obsolete and not clean_text(request.obsolete_reason):
        raise ValidationFailed("A reason is required to declare an asset obsolete")
    if request.requires_replacement and not request.is_obsolete:
        raise ValidationFailed("A replacement can only be deployed for an obsolete asset")
    replacement_serial = (request.replacement_asset_serial or "").strip()
    if request.requires_replacement and not replacement_serial:
        raise ValidationFailed("Replacement asset serial number is required")

    ticket = _get_ticket(db, ticket_id)
    check_ticket_transition(ticket.status, RESOLVED)

    try:
        asset = None
        if ticket.asset_id:
            asset = db.query(Asset).filter(Asset.id == ticket.asset_id).with_for_update().first()
        if asset is None:
            raise NotFound(f"Asset {ticket.asset_serial} not found")
        if asset.status != UNDER_MAINTENANCE:
            raise IneligibleStatus(f"Asset {asset.serial_number} is {asset.status}, not Under Maintenance")

        replacement = None
        if request.requires_replacement:
            replacement = db.query(Asset).filter(Asset.serial_number == replacement_serial).with_for_update().first()
            if not replacement:
                raise NotFound(f"Replacement asset {replacement_serial} not found")
            if replacement.id == asset.id:
                raise ValidationFailed("An asset cannot replace itself")
            if replacement.asset_type != asset.asset_type:
                raise ValidationFailed(
                    f"Replacement must be a {asset.asset_type}; {replacement_serial} is a {replacement.asset_type}"
                )
            if replacement.status != IN_STORE:
                raise IneligibleStatus(
                    f"Replacement asset {replacement_serial} is {replacement.status}; only In Store assets can be used"
                )
            if replacement.pair_id is not None:
                raise IneligibleStatus(
                    f"Replacement asset {replacement_serial} belongs to a pair; unpair it first"
                )

        now = datetime.now(timezone.utc)
        old_state = _asset_state(asset)
        ticket.status = RESOLVED
        ticket.resolution = resolution
        ticket.date_returned = now
        ticket.updated_at = now
        if request.cost is not None:
            ticket.cost = request.cost

        if not request.is_obsolete:
            asset.status = ticket.asset_status_before if ticket.asset_status_before in SERVICEABLE_STATUSES else ACTIVE
            asset.updated_at = now
            db.flush()
            create_audit_log(
                db,
                entity_type="maintenance_ticket",
                entity_id=ticket.id,
                asset_serial=asset.serial_number,
                action="Maintenance Resolved",
                actor=actor,
                details=f"Maintenance completed: {resolution}",
                old_values=old_state,
                new_values=_asset_state(asset),
                context={"ticket_id": str(ticket.id)},
            )
        else:
            ticket.is_obsolete = True
            ticket.obsolete_reason = clean_text(request.obsolete_reason)
            ticket.obsolete_date = now
            asset.status = OBSOLETE
            asset.updated_at = now

            replacement_state = _asset_state(replacement) if replacement is not None else None
            if replacement is not None:
                apply_ownership(replacement, ownership_of(asset))
                replacement.status = ACTIVE
                replacement.updated_at = now
            pair = _swap_into_pair(db, asset, replacement)
            db.flush()

            create_audit_log(
                db,
                entity_type="maintenance_ticket",
                entity_id=ticket.id,
                asset_serial=asset.serial_number,
                action="Asset Declared Obsolete",
                actor=actor,
                details=f"Asset declared obsolete: {ticket.obsolete_reason}",
                old_values=old_state,
                new_values=_asset_state(asset),
                context={"ticket_id": str(ticket.id), "pair_id": str(pair.id) if pair is not None else None},
            )

            if replacement is not None:
                ticket.requires_replacement = True
                ticket.replacement_asset_serial = replacement.serial_number
                ticket.replacement_asset_type = replacement.asset_type
                ticket.replacement_brand = replacement.brand
                ticket.replacement_model = replacement.model
                ticket.replacement_status = "Deployed"
                record = AssetReplacement(
                    original_asset_id=asset.id,
                    original_asset_serial=asset.serial_number,
                    replacement_asset_id=replacement.id,
                    replacement_asset_serial=replacement.serial_number,
                    maintenance_ticket_id=ticket.id,
                    replacement_reason=ticket.obsolete_reason or "Asset obsolete",
                    replacement_date=now,
                    deployed_to_user=replacement.holder,
                    deployed_location=replacement.location,
                    deployed_department=replacement.department,
                    status="Deployed",
                )
                db.add(record)
                db.flush()
                create_audit_log(
                    db,
                    entity_type="asset_replacement",
                    entity_id=record.id,
                    asset_serial=replacement.serial_number,
                    action="Asset Replacement Deployed",
                    actor=actor,
                    details=f"Replacement asset deployed for obsolete asset {asset.serial_number}",
                    old_values=replacement_state,
                    new_values=_asset_state(replacement),
                    context={
                        "ticket_id": str(ticket.id),
                        "original_asset_serial": asset.serial_number,
                        "pair_id": str(replacement.pair_id) if replacement.pair_id else None,
                    },
                )
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrentModification("Asset was modified by another request; reload and try again")
    except Exception:
        db.rollback()
        logger.warning("maintenance_resolution_rejected", ticket_id=str(ticket_id))
        raise

    db.refresh(ticket)
    logger.info(
        "maintenance_ticket_resolved",
        ticket_id=str(ticket.id),
        serial=ticket.asset_serial,
        obsolete=bool(ticket.is_obsolete),
        replacement=ticket.replacement_asset_serial,
    )
    return ticket


def replacement_candidates(db: Session, asset_type: str, exclude_serial: Optional[str] = None) -> List[Asset]:
    query = db.query(Asset).filter(
        Asset.asset_type == asset_type, Asset.status == IN_STORE, Asset.pair_id.is_(None)
    )
    if exclude_serial:
        query = query.filter(Asset.serial_number != exclude_serial)
    return query.order_by(Asset.serial_number.asc()).all()

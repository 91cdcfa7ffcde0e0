"""
Lifecycle / ownership state engine.

``compute_transition`` is pure: it takes an explicit request and immutable
snapshots of the assets (and pair) involved and returns the plan of what has
to change. ``apply_lifecycle_action`` does the I/O around it and commits the
asset rows, the pair row, the lifecycle record and the audit entry as one
transaction.
"""
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..config import settings
from ..models.models import Asset, AssetPair, LifecycleAction, User, UserDetails
from .audit import create_audit_log
from .errors import (
    AssetInUse,
    ConcurrentModification,
    IneligibleStatus,
    NotFound,
    PairTypeMismatch,
    ValidationFailed,
)
from .validation import clean_text, normalize_domain_account

logger = structlog.get_logger(__name__)


ACTIVE = "Active"
IN_STORE = "In Store"
UNDER_MAINTENANCE = "Under Maintenance"
OBSOLETE = "Obsolete"
DISPOSED = "Disposed"

NEW_DEPLOYMENT = "New Deployment"
REDEPLOYMENT = "Redeployment"
RELOCATION = "Relocation"
SURRENDER = "Surrender"
CHANGE_OF_OWNERSHIP = "Change of Ownership"
EXIT = "Exit"

ACTION_TYPES = (NEW_DEPLOYMENT, REDEPLOYMENT, RELOCATION, SURRENDER, CHANGE_OF_OWNERSHIP, EXIT)
DEPLOY_ACTIONS = frozenset({NEW_DEPLOYMENT, REDEPLOYMENT})
MOVE_ACTIONS = frozenset({RELOCATION, CHANGE_OF_OWNERSHIP})
RETURN_ACTIONS = frozenset({SURRENDER, EXIT})

PAIR = "Pair"
INDIVIDUAL = "Individual"

# pair type -> (primary asset type, secondary asset type)
PAIR_COMPOSITION = {
    "PC": ("CPU", "Monitor"),
    "VDI": ("VDI Receiver", "Monitor"),
}


@dataclass(frozen=True)
class Ownership:
    holder: Optional[str] = None
    domain_account: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    section: Optional[str] = None

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {
            "holder": self.holder,
            "domain_account": self.domain_account,
            "location": self.location,
            "department": self.department,
            "section": self.section,
        }


@dataclass(frozen=True)
class AssetSnapshot:
    id: uuid.UUID
    serial_number: str
    asset_type: str
    status: str
    ownership: Ownership
    pair_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class PairSnapshot:
    id: uuid.UUID
    primary_asset_id: uuid.UUID
    secondary_asset_id: uuid.UUID
    pair_type: str
    is_deployed: bool
    ownership: Ownership


@dataclass(frozen=True)
class TransitionRequest:
    action_type: str
    primary_asset_serial: str
    deployment_type: str = INDIVIDUAL
    secondary_asset_serial: Optional[str] = None
    asset_pair_type: Optional[str] = None
    to: Ownership = field(default_factory=Ownership)
    comments: Optional[str] = None


@dataclass(frozen=True)
class AssetChange:
    asset_id: uuid.UUID
    serial_number: str
    old: Dict[str, Optional[str]]
    new: Dict[str, Optional[str]]


@dataclass(frozen=True)
class TransitionPlan:
    action_type: str
    status: str
    ownership: Ownership
    from_ownership: Ownership
    asset_changes: Tuple[AssetChange, ...]
    pair_outcome: Optional[str] = None  # create|reuse|None
    pair_id: Optional[uuid.UUID] = None
    pair_type: Optional[str] = None
    pair_is_deployed: Optional[bool] = None
    primary_asset_id: Optional[uuid.UUID] = None
    secondary_asset_id: Optional[uuid.UUID] = None
    audit_details: str = ""


def custodian_ownership() -> Ownership:
    return Ownership(
        holder=settings.custodian_holder,
        location=settings.custodian_location,
        department=settings.custodian_department,
    )


def resolve_status(action_type: str, current_status: str) -> str:
    """Status an asset ends in after ``action_type`` (status column of the transition table)."""
    if action_type in DEPLOY_ACTIONS:
        return ACTIVE
    if action_type in RETURN_ACTIONS:
        return IN_STORE
    if action_type in MOVE_ACTIONS:
        return current_status
    raise ValidationFailed(f"Unknown action type: {action_type}")


def _asset_state(status: str, ownership: Ownership) -> Dict[str, Optional[str]]:
    return {"status": status, **ownership.as_dict()}


def _order_pair_members(
    assets: Sequence[AssetSnapshot], pair_type: Optional[str]
) -> Tuple[AssetSnapshot, AssetSnapshot]:
    if pair_type not in PAIR_COMPOSITION:
        raise ValidationFailed("Pair type must be PC or VDI")
    if len(assets) != 2:
        raise ValidationFailed("A pair action needs exactly two distinct assets")
    primary_type, secondary_type = PAIR_COMPOSITION[pair_type]
    first, second = assets
    if first.asset_type == primary_type and second.asset_type == secondary_type:
        return first, second
    if second.asset_type == primary_type and first.asset_type == secondary_type:
        return second, first
    raise PairTypeMismatch(
        f"A {pair_type} pair must be one {primary_type} and one {secondary_type}; "
        f"got {first.asset_type} ({first.serial_number}) and {second.asset_type} ({second.serial_number})"
    )


def _check_deployable(asset: AssetSnapshot) -> None:
    if asset.status == ACTIVE:
        raise AssetInUse(f"Asset {asset.serial_number} is already in use")
    if asset.status != IN_STORE:
        raise IneligibleStatus(
            f"Asset {asset.serial_number} is {asset.status}; only assets In Store can be deployed"
        )


def _check_deployed(asset: AssetSnapshot, action_type: str) -> None:
    if asset.status != ACTIVE:
        raise IneligibleStatus(
            f"Asset {asset.serial_number} is {asset.status}; {action_type} requires a deployed (Active) asset"
        )


def _target_ownership(action_type: str, requested: Ownership, current: Ownership, custodian: Ownership) -> Ownership:
    if action_type in RETURN_ACTIONS:
        return custodian

    holder = clean_text(requested.holder)
    location = clean_text(requested.location)
    department = clean_text(requested.department)
    section = clean_text(requested.section)
    domain_account = clean_text(requested.domain_account)

    if action_type in DEPLOY_ACTIONS:
        missing = [
            name for name, value in (
                ("holder", holder),
                ("domain account", domain_account),
                ("location", location),
                ("department", department),
            ) if not value
        ]
        if missing:
            raise ValidationFailed(f"{action_type} requires destination {', '.join(missing)}")
        return Ownership(
            holder=holder,
            domain_account=normalize_domain_account(domain_account),
            location=location,
            department=department,
            section=section,
        )

    if action_type == CHANGE_OF_OWNERSHIP:
        if not holder:
            raise ValidationFailed("Change of Ownership requires the new holder")
        return Ownership(
            holder=holder,
            domain_account=normalize_domain_account(domain_account),
            location=location or current.location,
            department=department or current.department,
            section=section if section is not None else current.section,
        )

    # Relocation: holder stays unless a new one is given
    if not location:
        raise ValidationFailed("Relocation requires the destination location")
    return Ownership(
        holder=holder or current.holder,
        domain_account=normalize_domain_account(domain_account) if domain_account else current.domain_account,
        location=location,
        department=department or current.department,
        section=section if section is not None else current.section,
    )


def compute_transition(
    request: TransitionRequest,
    assets: Sequence[AssetSnapshot],
    pair: Optional[PairSnapshot] = None,
    custodian: Optional[Ownership] = None,
) -> TransitionPlan:
    """
    Validate a lifecycle request against the current state and compute the result.

    Raises a subclass of AssetManagerError when the request is not eligible;
    nothing is mutated either way.
    """
    action_type = request.action_type
    if action_type not in ACTION_TYPES:
        raise ValidationFailed(f"Unknown action type: {action_type}")
    if request.deployment_type not in (PAIR, INDIVIDUAL):
        raise ValidationFailed("Deployment type must be Pair or Individual")
    if not assets:
        raise NotFound(f"Asset {request.primary_asset_serial} not found")

    is_pair = request.deployment_type == PAIR
    if is_pair:
        primary, secondary = _order_pair_members(assets, request.asset_pair_type)
        members: List[AssetSnapshot] = [primary, secondary]
        if pair is not None and {pair.primary_asset_id, pair.secondary_asset_id} != {primary.id, secondary.id}:
            raise ValidationFailed("Pair record does not link the requested assets")
        if pair is not None and pair.pair_type != request.asset_pair_type:
            raise PairTypeMismatch(
                f"Existing pair is a {pair.pair_type} pair, not {request.asset_pair_type}"
            )
        for member in members:
            if member.pair_id is not None and (pair is None or member.pair_id != pair.id):
                raise IneligibleStatus(
                    f"Asset {member.serial_number} already belongs to another pair"
                )
    else:
        if len(assets) != 1:
            raise ValidationFailed("An individual action applies to exactly one asset")
        primary, secondary = assets[0], None
        members = [primary]
        if primary.pair_id is not None:
            raise IneligibleStatus(
                f"Asset {primary.serial_number} is part of a pair; act on the pair instead"
            )

    pair_outcome = None
    pair_is_deployed = None
    if action_type in DEPLOY_ACTIONS:
        for member in members:
            _check_deployable(member)
        if is_pair:
            if pair is not None and pair.is_deployed:
                raise AssetInUse("Pair is already deployed")
            if pair is None and action_type == REDEPLOYMENT:
                raise NotFound(
                    f"No existing pair found for {primary.serial_number} and {secondary.serial_number}"
                )
            pair_outcome = "reuse" if pair is not None else "create"
            pair_is_deployed = True
    else:
        for member in members:
            _check_deployed(member, action_type)
        if is_pair:
            if pair is None:
                raise NotFound(
                    f"No pair found for {primary.serial_number} and {secondary.serial_number}"
                )
            if not pair.is_deployed:
                raise IneligibleStatus("Pair is not deployed")
            pair_outcome = "reuse"
            pair_is_deployed = action_type not in RETURN_ACTIONS

    ownership = _target_ownership(action_type, request.to, primary.ownership, custodian or custodian_ownership())
    status = resolve_status(action_type, primary.status)

    changes = tuple(
        AssetChange(
            asset_id=member.id,
            serial_number=member.serial_number,
            old=_asset_state(member.status, member.ownership),
            new=_asset_state(status, ownership),
        )
        for member in members
    )

    subject = (
        f"{request.asset_pair_type} pair {primary.serial_number}/{secondary.serial_number}"
        if is_pair else f"asset {primary.serial_number}"
    )
    if action_type in RETURN_ACTIONS:
        details = f"{action_type} of {subject}: returned to {ownership.location}"
    else:
        details = f"{action_type} of {subject} to {ownership.holder} ({ownership.location}, {ownership.department})"

    return TransitionPlan(
        action_type=action_type,
        status=status,
        ownership=ownership,
        from_ownership=primary.ownership,
        asset_changes=changes,
        pair_outcome=pair_outcome,
        pair_id=pair.id if pair is not None else None,
        pair_type=request.asset_pair_type if is_pair else None,
        pair_is_deployed=pair_is_deployed,
        primary_asset_id=primary.id,
        secondary_asset_id=secondary.id if secondary is not None else None,
        audit_details=details,
    )


# ---------- persistence edge ----------

def ownership_of(asset: Asset) -> Ownership:
    return Ownership(
        holder=asset.holder,
        domain_account=asset.domain_account,
        location=asset.location,
        department=asset.department,
        section=asset.section,
    )


def snapshot_asset(asset: Asset) -> AssetSnapshot:
    return AssetSnapshot(
        id=asset.id,
        serial_number=asset.serial_number,
        asset_type=asset.asset_type,
        status=asset.status,
        ownership=ownership_of(asset),
        pair_id=asset.pair_id,
    )


def snapshot_pair(pair: AssetPair) -> PairSnapshot:
    return PairSnapshot(
        id=pair.id,
        primary_asset_id=pair.primary_asset_id,
        secondary_asset_id=pair.secondary_asset_id,
        pair_type=pair.pair_type,
        is_deployed=bool(pair.is_deployed),
        ownership=Ownership(
            holder=pair.current_holder,
            domain_account=pair.current_domain_account,
            location=pair.current_location,
            department=pair.current_department,
            section=pair.current_section,
        ),
    )


def apply_ownership(target, ownership: Ownership, prefix: str = "") -> None:
    """Copy an ownership snapshot onto an Asset (no prefix) or AssetPair (``current_``)."""
    for key, value in ownership.as_dict().items():
        setattr(target, f"{prefix}{key}", value)


def find_pair_for(db: Session, first_id: uuid.UUID, second_id: uuid.UUID) -> Optional[AssetPair]:
    return db.query(AssetPair).filter(
        or_(
            and_(AssetPair.primary_asset_id == first_id, AssetPair.secondary_asset_id == second_id),
            and_(AssetPair.primary_asset_id == second_id, AssetPair.secondary_asset_id == first_id),
        )
    ).with_for_update().first()


def _load_assets(db: Session, serials: Sequence[str]) -> List[Asset]:
    rows = db.query(Asset).filter(Asset.serial_number.in_(serials)).with_for_update().all()
    by_serial = {a.serial_number: a for a in rows}
    ordered = []
    for serial in serials:
        asset = by_serial.get(serial)
        if asset is None:
            raise NotFound(f"Asset {serial} not found")
        ordered.append(asset)
    return ordered


def _fill_from_directory(db: Session, requested: Ownership) -> Ownership:
    """Complete missing destination fields from the holder directory entry of the domain account."""
    account = clean_text(requested.domain_account)
    if not account:
        return requested
    entry = db.query(UserDetails).filter(
        UserDetails.domain_account == account.upper(),
        UserDetails.is_active == True,  # noqa: E712
    ).first()
    if entry is None:
        return requested
    return replace(
        requested,
        holder=clean_text(requested.holder) or entry.full_name,
        location=clean_text(requested.location) or entry.location,
        department=clean_text(requested.department) or entry.department,
        section=clean_text(requested.section) or entry.section,
    )


def _request_serials(request: TransitionRequest) -> List[str]:
    primary = (request.primary_asset_serial or "").strip()
    if not primary:
        raise ValidationFailed("Asset serial number is required")
    if request.deployment_type != PAIR:
        return [primary]
    secondary = (request.secondary_asset_serial or "").strip()
    if not secondary:
        raise ValidationFailed("A pair action requires both asset serial numbers")
    if secondary == primary:
        raise ValidationFailed("A pair needs two different assets")
    return [primary, secondary]


def apply_lifecycle_action(db: Session, request: TransitionRequest, actor: User) -> LifecycleAction:
    """
    Validate and apply a lifecycle action atomically.

    Asset rows, pair row, lifecycle record and audit entry are committed
    together; on any failure the session is rolled back and nothing changes.
    """
    try:
        serials = _request_serials(request)
        assets = _load_assets(db, serials)
        by_id = {a.id: a for a in assets}

        pair_row = None
        if request.deployment_type == PAIR:
            pair_row = find_pair_for(db, assets[0].id, assets[1].id)
            request = replace(request, to=_fill_from_directory(db, request.to))
        elif request.action_type not in RETURN_ACTIONS:
            request = replace(request, to=_fill_from_directory(db, request.to))

        plan = compute_transition(
            request,
            [snapshot_asset(a) for a in assets],
            snapshot_pair(pair_row) if pair_row is not None else None,
        )

        now = datetime.now(timezone.utc)
        if plan.pair_outcome == "create":
            pair_row = AssetPair(
                primary_asset_id=plan.primary_asset_id,
                secondary_asset_id=plan.secondary_asset_id,
                pair_type=plan.pair_type,
                is_deployed=False,
            )
            db.add(pair_row)
            db.flush()

        for change in plan.asset_changes:
            asset = by_id[change.asset_id]
            asset.status = plan.status
            apply_ownership(asset, plan.ownership)
            if pair_row is not None:
                asset.pair_id = pair_row.id
            asset.updated_at = now

        if pair_row is not None:
            pair_row.is_deployed = bool(plan.pair_is_deployed)
            apply_ownership(pair_row, plan.ownership, prefix="current_")
            pair_row.updated_at = now

        primary = by_id[plan.primary_asset_id]
        secondary = by_id.get(plan.secondary_asset_id) if plan.secondary_asset_id else None
        action = LifecycleAction(
            action_type=plan.action_type,
            deployment_type=request.deployment_type,
            primary_asset_serial=primary.serial_number,
            secondary_asset_serial=secondary.serial_number if secondary is not None else None,
            asset_pair_type=plan.pair_type,
            pair_id=pair_row.id if pair_row is not None else None,
            from_holder=plan.from_ownership.holder,
            from_domain_account=plan.from_ownership.domain_account,
            from_location=plan.from_ownership.location,
            from_department=plan.from_ownership.department,
            from_section=plan.from_ownership.section,
            to_holder=plan.ownership.holder,
            to_domain_account=plan.ownership.domain_account,
            to_location=plan.ownership.location,
            to_department=plan.ownership.department,
            to_section=plan.ownership.section,
            requested_by=actor.id,
            requested_by_name=actor.name,
            status="Pending",
            request_date=now,
            comments=clean_text(request.comments),
        )
        db.add(action)
        db.flush()

        create_audit_log(
            db,
            entity_type="lifecycle_action",
            entity_id=action.id,
            asset_serial=primary.serial_number,
            action=plan.action_type,
            actor=actor,
            details=plan.audit_details,
            old_values={c.serial_number: c.old for c in plan.asset_changes},
            new_values={c.serial_number: c.new for c in plan.asset_changes},
            context={
                "lifecycle_action_id": str(action.id),
                "deployment_type": request.deployment_type,
                "pair_id": str(pair_row.id) if pair_row is not None else None,
                "pair_type": plan.pair_type,
            },
        )
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning("lifecycle_action_conflict", action_type=request.action_type, serial=request.primary_asset_serial)
        raise ConcurrentModification("Asset was modified by another request; reload and try again")
    except Exception:
        db.rollback()
        logger.warning("lifecycle_action_rejected", action_type=request.action_type, serial=request.primary_asset_serial)
        raise

    db.refresh(action)
    logger.info(
        "lifecycle_action_applied",
        action_id=str(action.id),
        action_type=action.action_type,
        serial=action.primary_asset_serial,
        pair_id=str(action.pair_id) if action.pair_id else None,
        status=plan.status,
    )
    return action


def complete_lifecycle_action(db: Session, action_id: uuid.UUID, actor: User) -> LifecycleAction:
    """Flip a Pending action to Completed; the ownership change itself was applied on creation."""
    action = db.query(LifecycleAction).filter(LifecycleAction.id == action_id).first()
    if not action:
        raise NotFound("Lifecycle action not found")
    if action.status == "Completed":
        raise IneligibleStatus("Lifecycle action is already completed")

    try:
        action.status = "Completed"
        action.completion_date = datetime.now(timezone.utc)
        create_audit_log(
            db,
            entity_type="lifecycle_action",
            entity_id=action.id,
            asset_serial=action.primary_asset_serial,
            action=f"{action.action_type} Completed",
            actor=actor,
            details=f"{action.action_type} request completed for asset {action.primary_asset_serial}",
            old_values={"status": "Pending"},
            new_values={
                "status": "Completed",
                "holder": action.to_holder,
                "location": action.to_location,
                "department": action.to_department,
            },
            context={"lifecycle_action_id": str(action.id)},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(action)
    logger.info("lifecycle_action_completed", action_id=str(action.id))
    return action


def unpair(db: Session, pair_id: uuid.UUID, actor: User) -> None:
    """Dissolve an undeployed pair so its members can be deployed separately."""
    pair = db.query(AssetPair).filter(AssetPair.id == pair_id).with_for_update().first()
    if not pair:
        raise NotFound("Asset pair not found")
    if pair.is_deployed:
        raise IneligibleStatus("A deployed pair cannot be split; surrender it first")

    try:
        members = db.query(Asset).filter(Asset.pair_id == pair.id).all()
        serials = sorted(a.serial_number for a in members)
        for asset in members:
            asset.pair_id = None
            asset.updated_at = datetime.now(timezone.utc)
        db.flush()
        create_audit_log(
            db,
            entity_type="asset_pair",
            entity_id=pair.id,
            asset_serial=serials[0] if serials else None,
            action="Pair Dissolved",
            actor=actor,
            details=f"{pair.pair_type} pair {'/'.join(serials)} dissolved",
            old_values={"pair_id": str(pair.id), "members": serials},
        )
        db.delete(pair)
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrentModification("Pair was modified by another request; reload and try again")
    except Exception:
        db.rollback()
        raise
    logger.info("asset_pair_dissolved", pair_id=str(pair_id))

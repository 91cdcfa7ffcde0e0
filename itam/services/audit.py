"""
Audit logging service.
Append-only audit log with integrity hashing.
"""
import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session

from ..models.models import AuditLog, User
from ..config import settings


def _utc_naive(ts: datetime) -> datetime:
    # Some backends hand timestamps back without tzinfo; all are stored as UTC
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def _canonical_payload(
    asset_serial: Optional[str],
    entity_type: str,
    entity_id: Optional[uuid.UUID],
    action: str,
    actor_id: Optional[uuid.UUID],
    actor_role: Optional[str],
    timestamp_utc: datetime,
    details: Optional[str],
    old_values: Optional[Dict],
    new_values: Optional[Dict],
    context: Optional[Dict],
) -> str:
    canonical_data = {
        "asset_serial": asset_serial,
        "entity_type": entity_type,
        "entity_id": str(entity_id) if entity_id else None,
        "action": action,
        "actor_id": str(actor_id) if actor_id else None,
        "actor_role": actor_role,
        "timestamp_utc": _utc_naive(timestamp_utc).isoformat(),
        "details": details,
        "old_values": old_values,
        "new_values": new_values,
        "context": context,
    }
    # Remove None values and sort keys for consistency
    canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
    return json.dumps(canonical_data, sort_keys=True, default=str)


def _hash(canonical_json: str, secret: str) -> str:
    hash_input = f"{canonical_json}:{secret}"
    return hashlib.sha256(hash_input.encode()).hexdigest()


def create_audit_log(
    db: Session,
    entity_type: str,
    action: str,
    entity_id: Optional[uuid.UUID] = None,
    asset_serial: Optional[str] = None,
    actor: Optional[User] = None,
    details: Optional[str] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    context: Optional[Dict[str, Any]] = None,
    integrity_secret: Optional[str] = None,
) -> AuditLog:
    """
    Append an audit log entry to the current transaction.

    The row is flushed, not committed: the caller commits it together with the
    state change it describes, so a failed change never leaves an audit entry
    behind (and vice versa).

    Args:
        db: Database session
        entity_type: asset|asset_pair|lifecycle_action|maintenance_ticket|user|user_details
        action: Human readable label ("New Deployment", "Asset Declared Obsolete", ...)
        entity_id: Id of the entity the entry is about
        asset_serial: Serial number of the asset concerned, when there is one
        actor: User who performed the action
        details: Free text description
        old_values: Snapshot before the change
        new_values: Snapshot after the change
        context: Related ids (pair_id, ticket_id, lifecycle_action_id)
        integrity_secret: Secret for integrity hash (defaults to JWT_SECRET)

    Returns:
        Created AuditLog object
    """
    timestamp_utc = datetime.now(timezone.utc)
    actor_id = actor.id if actor else None
    actor_role = actor.role if actor else "system"

    integrity_hash = None
    if integrity_secret is None:
        integrity_secret = settings.jwt_secret
    if integrity_secret:
        canonical_json = _canonical_payload(
            asset_serial, entity_type, entity_id, action, actor_id, actor_role,
            timestamp_utc, details, old_values, new_values, context,
        )
        integrity_hash = _hash(canonical_json, integrity_secret)

    audit_log = AuditLog(
        asset_serial=asset_serial,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        performed_by=actor.name if actor else "system",
        actor_role=actor_role,
        details=details,
        old_values=old_values,
        new_values=new_values,
        context=context,
        timestamp_utc=timestamp_utc,
        integrity_hash=integrity_hash,
    )

    db.add(audit_log)
    db.flush()
    return audit_log


def verify_audit_log(entry: AuditLog, integrity_secret: Optional[str] = None) -> bool:
    """Recompute the integrity hash of a stored entry and compare it."""
    if not entry.integrity_hash:
        return False
    secret = integrity_secret if integrity_secret is not None else settings.jwt_secret
    canonical_json = _canonical_payload(
        entry.asset_serial, entry.entity_type, entry.entity_id, entry.action,
        entry.actor_id, entry.actor_role, entry.timestamp_utc, entry.details,
        entry.old_values, entry.new_values, entry.context,
    )
    return _hash(canonical_json, secret) == entry.integrity_hash


def get_audit_logs(
    db: Session,
    asset_serial: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    action: Optional[str] = None,
    actor_id: Optional[uuid.UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0
) -> list:
    """
    Get audit logs with optional filtering, newest first.
    """
    query = db.query(AuditLog)

    if asset_serial:
        query = query.filter(AuditLog.asset_serial == asset_serial)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    if action:
        query = query.filter(AuditLog.action.ilike(f"%{action}%"))
    if actor_id:
        query = query.filter(AuditLog.actor_id == actor_id)
    if date_from:
        query = query.filter(AuditLog.timestamp_utc >= date_from)
    if date_to:
        query = query.filter(AuditLog.timestamp_utc <= date_to)

    query = query.order_by(AuditLog.timestamp_utc.desc())
    query = query.limit(limit).offset(offset)

    return query.all()


def compute_diff(before: Dict, after: Dict) -> Dict:
    """
    Compute a diff between two dictionaries.

    Returns:
        Dict with before/after values for changed fields
    """
    diff = {}
    all_keys = set(before.keys()) | set(after.keys())

    for key in all_keys:
        before_val = before.get(key)
        after_val = after.get(key)

        if before_val != after_val:
            diff[key] = {
                "before": before_val,
                "after": after_val,
            }

    return diff

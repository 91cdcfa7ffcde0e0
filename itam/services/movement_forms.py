"""
Signed movement forms attached to lifecycle actions.
"""
import io
import uuid
from typing import Optional

import structlog
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import LifecycleAction, User
from ..storage.provider import StorageProvider
from .audit import create_audit_log
from .errors import NotFound, ValidationFailed

logger = structlog.get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
# Some browsers send octet-stream for PDFs; the bytes are parsed anyway
ACCEPTED_CONTENT_TYPES = (PDF_CONTENT_TYPE, "application/octet-stream", None, "")


def movement_form_key(action_id: uuid.UUID) -> str:
    return f"movement-forms/{action_id}-movement-form.pdf"


def validate_movement_form(data: bytes, content_type: Optional[str], filename: Optional[str]) -> None:
    """Accept only non-empty PDFs up to the configured size that actually parse."""
    if content_type not in ACCEPTED_CONTENT_TYPES or (filename and not filename.lower().endswith(".pdf")):
        raise ValidationFailed("Movement form must be a PDF file")
    if not data:
        raise ValidationFailed("Movement form is empty")
    if len(data) > settings.movement_form_max_bytes:
        limit_mb = settings.movement_form_max_bytes // (1024 * 1024)
        raise ValidationFailed(f"Movement form exceeds the {limit_mb}MB limit")
    try:
        reader = PdfReader(io.BytesIO(data))
        if len(reader.pages) == 0:
            raise ValidationFailed("Movement form has no pages")
    except (PdfReadError, ValueError):
        raise ValidationFailed("Movement form is not a valid PDF")


def attach_movement_form(
    db: Session,
    storage: StorageProvider,
    action_id: uuid.UUID,
    data: bytes,
    actor: User,
    content_type: Optional[str] = None,
    filename: Optional[str] = None,
) -> LifecycleAction:
    action = db.query(LifecycleAction).filter(LifecycleAction.id == action_id).first()
    if not action:
        raise NotFound("Lifecycle action not found")
    validate_movement_form(data, content_type, filename)

    key = movement_form_key(action.id)
    storage.put(key, data, PDF_CONTENT_TYPE)
    previous = action.movement_form_path
    try:
        action.movement_form_path = key
        create_audit_log(
            db,
            entity_type="lifecycle_action",
            entity_id=action.id,
            asset_serial=action.primary_asset_serial,
            action="Movement Form Uploaded",
            actor=actor,
            details=f"Movement form uploaded for {action.action_type} of {action.primary_asset_serial}",
            old_values={"movement_form_path": previous},
            new_values={"movement_form_path": key, "size": len(data)},
            context={"lifecycle_action_id": str(action.id), "storage": storage.name},
        )
        db.commit()
    except Exception:
        db.rollback()
        if previous != key:
            storage.delete(key)
        raise
    db.refresh(action)
    logger.info("movement_form_attached", action_id=str(action.id), size=len(data))
    return action


def movement_form_url(storage: StorageProvider, action: LifecycleAction) -> str:
    if not action.movement_form_path:
        raise NotFound("No movement form has been uploaded for this action")
    url = storage.get_download_url(action.movement_form_path, settings.signed_url_ttl_seconds)
    if not url:
        raise NotFound("Movement form file is missing from storage")
    return url

import uuid
from datetime import datetime
from typing import Optional, Dict, Any

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: uuid.UUID
    asset_serial: Optional[str] = None
    entity_type: str
    entity_id: Optional[uuid.UUID] = None
    action: str
    actor_id: Optional[uuid.UUID] = None
    performed_by: Optional[str] = None
    actor_role: Optional[str] = None
    details: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    context: Optional[Dict[str, Any]] = None
    timestamp_utc: datetime

    class Config:
        from_attributes = True


class AuditVerifyResponse(BaseModel):
    id: uuid.UUID
    valid: bool

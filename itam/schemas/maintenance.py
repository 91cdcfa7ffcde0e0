import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from enum import Enum

from pydantic import BaseModel, model_validator


class TicketPriority(str, Enum):
    low = "Low"
    medium = "Medium"
    high = "High"
    critical = "Critical"


class TicketStatus(str, Enum):
    open = "Open"
    in_progress = "In Progress"
    resolved = "Resolved"
    closed = "Closed"


class TicketCategory(str, Enum):
    hardware = "Hardware"
    software = "Software"
    network = "Network"
    replacement = "Replacement"


class MaintenanceTicketCreate(BaseModel):
    asset_serial: str
    title: str
    description: Optional[str] = None
    priority: TicketPriority = TicketPriority.medium.value
    category: Optional[TicketCategory] = None
    reported_by: Optional[str] = None
    assigned_to: Optional[str] = None
    date_received: Optional[datetime] = None
    cost: Optional[Decimal] = None

    class Config:
        use_enum_values = True


class MaintenanceTicketUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TicketPriority] = None
    category: Optional[TicketCategory] = None
    reported_by: Optional[str] = None
    assigned_to: Optional[str] = None
    cost: Optional[Decimal] = None
    status: Optional[TicketStatus] = None

    class Config:
        use_enum_values = True


class MaintenanceResolve(BaseModel):
    resolution: str
    is_obsolete: bool = False
    obsolete_reason: Optional[str] = None
    requires_replacement: bool = False
    replacement_asset_serial: Optional[str] = None
    cost: Optional[Decimal] = None

    @model_validator(mode="after")
    def _replacement(self):
        if self.requires_replacement and not self.is_obsolete:
            raise ValueError("requires_replacement is only valid together with is_obsolete")
        return self


class MaintenanceTicketResponse(BaseModel):
    id: uuid.UUID
    asset_id: Optional[uuid.UUID] = None
    asset_serial: str
    asset_type: Optional[str] = None
    title: str
    description: Optional[str] = None
    priority: str
    status: str
    category: Optional[str] = None
    reported_by: Optional[str] = None
    assigned_to: Optional[str] = None
    date_received: datetime
    date_returned: Optional[datetime] = None
    resolution: Optional[str] = None
    cost: Optional[Decimal] = None
    asset_status_before: Optional[str] = None
    is_obsolete: bool = False
    obsolete_reason: Optional[str] = None
    obsolete_date: Optional[datetime] = None
    requires_replacement: bool = False
    replacement_asset_serial: Optional[str] = None
    replacement_asset_type: Optional[str] = None
    replacement_brand: Optional[str] = None
    replacement_model: Optional[str] = None
    replacement_status: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AssetReplacementResponse(BaseModel):
    id: uuid.UUID
    original_asset_id: Optional[uuid.UUID] = None
    original_asset_serial: str
    replacement_asset_id: Optional[uuid.UUID] = None
    replacement_asset_serial: str
    maintenance_ticket_id: Optional[uuid.UUID] = None
    replacement_reason: Optional[str] = None
    replacement_date: datetime
    deployed_to_user: Optional[str] = None
    deployed_location: Optional[str] = None
    deployed_department: Optional[str] = None
    status: str

    class Config:
        from_attributes = True

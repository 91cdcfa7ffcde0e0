import uuid
from datetime import datetime
from typing import Optional
from enum import Enum

from pydantic import BaseModel, field_validator


class AssetType(str, Enum):
    pc = "PC"
    laptop = "Laptop"
    vdi = "VDI"
    monitor = "Monitor"
    cpu = "CPU"
    vdi_receiver = "VDI Receiver"
    printer = "Printer"
    router = "Router"
    switch = "Switch"
    ip_phone = "IP Phone"


class AssetStatus(str, Enum):
    active = "Active"
    in_store = "In Store"
    under_maintenance = "Under Maintenance"
    obsolete = "Obsolete"
    disposed = "Disposed"


class PairType(str, Enum):
    pc = "PC"
    vdi = "VDI"


class AssetCreate(BaseModel):
    asset_type: AssetType
    serial_number: str
    brand: Optional[str] = None
    model: Optional[str] = None

    @field_validator("serial_number")
    @classmethod
    def _serial(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Serial number is required")
        return v

    class Config:
        use_enum_values = True


class AssetUpdate(BaseModel):
    asset_type: Optional[AssetType] = None
    serial_number: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    section: Optional[str] = None

    class Config:
        use_enum_values = True


class AssetResponse(BaseModel):
    id: uuid.UUID
    asset_type: str
    serial_number: str
    brand: Optional[str] = None
    model: Optional[str] = None
    holder: Optional[str] = None
    domain_account: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    section: Optional[str] = None
    status: str
    pair_id: Optional[uuid.UUID] = None
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    created_by: Optional[uuid.UUID] = None

    class Config:
        from_attributes = True


class AssetSummary(BaseModel):
    id: uuid.UUID
    asset_type: str
    serial_number: str
    brand: Optional[str] = None
    model: Optional[str] = None
    status: str

    class Config:
        from_attributes = True


class AssetPairResponse(BaseModel):
    id: uuid.UUID
    pair_type: str
    primary_asset_id: uuid.UUID
    secondary_asset_id: uuid.UUID
    primary_asset: Optional[AssetSummary] = None
    secondary_asset: Optional[AssetSummary] = None
    is_deployed: bool
    current_holder: Optional[str] = None
    current_domain_account: Optional[str] = None
    current_location: Optional[str] = None
    current_department: Optional[str] = None
    current_section: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    JSON,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


class User(Base):
    """Operators who sign in to the system"""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    personal_number: Mapped[str] = mapped_column(String(9), unique=True, nullable=False, index=True)  # K12345678 | T12345678
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="End User")  # Admin|ICT Officer|Department HOD|End User
    department: Mapped[Optional[str]] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class UserDetails(Base):
    """Directory of asset holders, keyed by domain account"""
    __tablename__ = "user_details"

    id: Mapped[uuid.UUID] = uuid_pk()
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain_account: Mapped[str] = mapped_column(String(9), unique=True, nullable=False, index=True)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    department: Mapped[Optional[str]] = mapped_column(String(255))
    section: Mapped[Optional[str]] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class Asset(Base):
    """Physical IT items tracked in the register"""
    __tablename__ = "assets"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # PC|Laptop|VDI|Monitor|CPU|VDI Receiver|Printer|Router|Switch|IP Phone
    serial_number: Mapped[str] = mapped_column(String(120), unique=True, nullable=False, index=True)
    brand: Mapped[Optional[str]] = mapped_column(String(120))
    model: Mapped[Optional[str]] = mapped_column(String(120))
    holder: Mapped[Optional[str]] = mapped_column(String(255))  # Current holder name
    domain_account: Mapped[Optional[str]] = mapped_column(String(9), index=True)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    department: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    section: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="In Store", index=True)  # Active|In Store|Under Maintenance|Obsolete|Disposed
    pair_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("asset_pairs.id", ondelete="SET NULL", use_alter=True), index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))

    pair = relationship("AssetPair", foreign_keys=[pair_id], viewonly=True)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index('idx_asset_type_status', 'asset_type', 'status'),
    )


class AssetPair(Base):
    """CPU or VDI Receiver deployed together with a Monitor"""
    __tablename__ = "asset_pairs"

    id: Mapped[uuid.UUID] = uuid_pk()
    primary_asset_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True)  # CPU or VDI Receiver
    secondary_asset_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True)  # Monitor
    pair_type: Mapped[str] = mapped_column(String(10), nullable=False)  # PC|VDI
    is_deployed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    current_holder: Mapped[Optional[str]] = mapped_column(String(255))
    current_domain_account: Mapped[Optional[str]] = mapped_column(String(9))
    current_location: Mapped[Optional[str]] = mapped_column(String(255))
    current_department: Mapped[Optional[str]] = mapped_column(String(255))
    current_section: Mapped[Optional[str]] = mapped_column(String(255))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    primary_asset = relationship("Asset", foreign_keys=[primary_asset_id], viewonly=True)
    secondary_asset = relationship("Asset", foreign_keys=[secondary_asset_id], viewonly=True)

    __mapper_args__ = {"version_id_col": version}


class LifecycleAction(Base):
    """Recorded ownership/location transition of an asset or pair"""
    __tablename__ = "lifecycle_actions"

    id: Mapped[uuid.UUID] = uuid_pk()
    action_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # New Deployment|Redeployment|Relocation|Surrender|Change of Ownership|Exit
    deployment_type: Mapped[str] = mapped_column(String(20), nullable=False, default="Individual")  # Pair|Individual
    primary_asset_serial: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    secondary_asset_serial: Mapped[Optional[str]] = mapped_column(String(120), index=True)
    asset_pair_type: Mapped[Optional[str]] = mapped_column(String(10))
    pair_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("asset_pairs.id", ondelete="SET NULL"))

    from_holder: Mapped[Optional[str]] = mapped_column(String(255))
    from_domain_account: Mapped[Optional[str]] = mapped_column(String(9))
    from_location: Mapped[Optional[str]] = mapped_column(String(255))
    from_department: Mapped[Optional[str]] = mapped_column(String(255))
    from_section: Mapped[Optional[str]] = mapped_column(String(255))

    to_holder: Mapped[Optional[str]] = mapped_column(String(255))
    to_domain_account: Mapped[Optional[str]] = mapped_column(String(9))
    to_location: Mapped[Optional[str]] = mapped_column(String(255))
    to_department: Mapped[Optional[str]] = mapped_column(String(255))
    to_section: Mapped[Optional[str]] = mapped_column(String(255))

    requested_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    requested_by_name: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending", index=True)  # Pending|Completed
    request_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    completion_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    comments: Mapped[Optional[str]] = mapped_column(Text)
    movement_form_path: Mapped[Optional[str]] = mapped_column(String(500))


class MaintenanceTicket(Base):
    """Repair/issue record raised against an asset"""
    __tablename__ = "maintenance_tickets"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("assets.id", ondelete="SET NULL"), index=True)
    asset_serial: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    asset_type: Mapped[Optional[str]] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="Medium")  # Low|Medium|High|Critical
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Open", index=True)  # Open|In Progress|Resolved|Closed
    category: Mapped[Optional[str]] = mapped_column(String(50))  # Hardware|Software|Network|Replacement
    reported_by: Mapped[Optional[str]] = mapped_column(String(255))
    assigned_to: Mapped[Optional[str]] = mapped_column(String(255))
    date_received: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    date_returned: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    resolution: Mapped[Optional[str]] = mapped_column(Text)
    cost: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    asset_status_before: Mapped[Optional[str]] = mapped_column(String(50))  # Asset status when the ticket was opened

    # Obsolete tracking
    is_obsolete: Mapped[bool] = mapped_column(Boolean, default=False)
    obsolete_reason: Mapped[Optional[str]] = mapped_column(Text)
    obsolete_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Replacement tracking
    requires_replacement: Mapped[bool] = mapped_column(Boolean, default=False)
    replacement_asset_serial: Mapped[Optional[str]] = mapped_column(String(120))
    replacement_asset_type: Mapped[Optional[str]] = mapped_column(String(50))
    replacement_brand: Mapped[Optional[str]] = mapped_column(String(120))
    replacement_model: Mapped[Optional[str]] = mapped_column(String(120))
    replacement_status: Mapped[Optional[str]] = mapped_column(String(20))  # Pending|Ordered|Received|Deployed

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    asset = relationship("Asset", viewonly=True)


class AssetReplacement(Base):
    """Links an obsolete asset to the asset deployed in its place"""
    __tablename__ = "asset_replacements"

    id: Mapped[uuid.UUID] = uuid_pk()
    original_asset_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("assets.id", ondelete="SET NULL"))
    original_asset_serial: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    replacement_asset_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("assets.id", ondelete="SET NULL"))
    replacement_asset_serial: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    maintenance_ticket_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("maintenance_tickets.id", ondelete="SET NULL"), index=True)
    replacement_reason: Mapped[Optional[str]] = mapped_column(Text)
    replacement_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    deployed_to_user: Mapped[Optional[str]] = mapped_column(String(255))
    deployed_location: Mapped[Optional[str]] = mapped_column(String(255))
    deployed_department: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Deployed")  # Pending|Ordered|Received|Deployed
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class AuditLog(Base):
    """Append-only audit log for every state-changing action"""
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    asset_serial: Mapped[Optional[str]] = mapped_column(String(120), index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # asset|asset_pair|lifecycle_action|maintenance_ticket|user|user_details
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)  # Human label, e.g. "New Deployment", "Asset Declared Obsolete"
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    performed_by: Mapped[Optional[str]] = mapped_column(String(255))
    actor_role: Mapped[Optional[str]] = mapped_column(String(50))
    details: Mapped[Optional[str]] = mapped_column(Text)
    old_values: Mapped[Optional[dict]] = mapped_column(JSON)
    new_values: Mapped[Optional[dict]] = mapped_column(JSON)
    context: Mapped[Optional[dict]] = mapped_column(JSON)  # Related ids: pair_id, ticket_id, lifecycle_action_id
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))  # SHA256 hash for integrity verification

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
        Index('idx_audit_actor', 'actor_id', 'timestamp_utc'),
    )

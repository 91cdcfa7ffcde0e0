from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_user
from ..models.models import Asset, AssetPair, AuditLog, LifecycleAction, MaintenanceTicket
from ..schemas.audit import AuditLogResponse
from ..schemas.dashboard import DashboardStats, ReportSummary

router = APIRouter(tags=["dashboard"])

PC_TYPES = ("PC", "CPU")
VDI_TYPES = ("VDI", "VDI Receiver")


def _grouped(db: Session, column) -> dict:
    rows = db.query(column, func.count()).group_by(column).all()
    return {(key or "Unassigned"): count for key, count in rows}


@router.get("/dashboard/stats", response_model=DashboardStats)
def dashboard_stats(db: Session = Depends(get_db), _=Depends(get_current_user)):
    by_status = _grouped(db, Asset.status)
    recent = db.query(AuditLog).order_by(AuditLog.timestamp_utc.desc()).limit(10).all()
    return DashboardStats(
        total_assets=sum(by_status.values()),
        active_assets=by_status.get("Active", 0),
        in_store_assets=by_status.get("In Store", 0),
        maintenance_assets=by_status.get("Under Maintenance", 0),
        obsolete_assets=by_status.get("Obsolete", 0),
        pc_assets=db.query(Asset).filter(Asset.asset_type.in_(PC_TYPES)).count(),
        vdi_assets=db.query(Asset).filter(Asset.asset_type.in_(VDI_TYPES)).count(),
        total_pairs=db.query(AssetPair).count(),
        deployed_pairs=db.query(AssetPair).filter(AssetPair.is_deployed == True).count(),  # noqa: E712
        recent_activities=[AuditLogResponse.model_validate(e) for e in recent],
    )


@router.get("/reports/summary", response_model=ReportSummary)
def report_summary(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return ReportSummary(
        by_status=_grouped(db, Asset.status),
        by_type=_grouped(db, Asset.asset_type),
        by_department=_grouped(db, Asset.department),
        open_maintenance=db.query(MaintenanceTicket).filter(MaintenanceTicket.status != "Closed").count(),
        lifecycle_actions_by_type=_grouped(db, LifecycleAction.action_type),
    )

from typing import Dict, List

from pydantic import BaseModel

from .audit import AuditLogResponse


class DashboardStats(BaseModel):
    total_assets: int
    active_assets: int
    in_store_assets: int
    maintenance_assets: int
    obsolete_assets: int
    pc_assets: int
    vdi_assets: int
    total_pairs: int
    deployed_pairs: int
    recent_activities: List[AuditLogResponse] = []


class ReportSummary(BaseModel):
    by_status: Dict[str, int]
    by_type: Dict[str, int]
    by_department: Dict[str, int]
    open_maintenance: int
    lifecycle_actions_by_type: Dict[str, int]

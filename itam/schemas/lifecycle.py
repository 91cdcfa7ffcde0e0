import uuid
from datetime import datetime
from typing import Optional
from enum import Enum

from pydantic import BaseModel, model_validator

from .assets import PairType


class ActionType(str, Enum):
    new_deployment = "New Deployment"
    redeployment = "Redeployment"
    relocation = "Relocation"
    surrender = "Surrender"
    change_of_ownership = "Change of Ownership"
    exit = "Exit"


class DeploymentType(str, Enum):
    pair = "Pair"
    individual = "Individual"


class ActionStatus(str, Enum):
    pending = "Pending"
    completed = "Completed"


class LifecycleActionCreate(BaseModel):
    action_type: ActionType
    deployment_type: DeploymentType = DeploymentType.individual.value
    primary_asset_serial: str
    secondary_asset_serial: Optional[str] = None
    asset_pair_type: Optional[PairType] = None
    to_holder: Optional[str] = None
    to_domain_account: Optional[str] = None
    to_location: Optional[str] = None
    to_department: Optional[str] = None
    to_section: Optional[str] = None
    comments: Optional[str] = None

    @model_validator(mode="after")
    def _pair_fields(self):
        if self.deployment_type == DeploymentType.pair:
            if not self.secondary_asset_serial:
                raise ValueError("secondary_asset_serial is required for pair actions")
            if self.asset_pair_type is None:
                raise ValueError("asset_pair_type is required for pair actions")
        return self

    class Config:
        use_enum_values = True


class LifecycleActionResponse(BaseModel):
    id: uuid.UUID
    action_type: str
    deployment_type: str
    primary_asset_serial: str
    secondary_asset_serial: Optional[str] = None
    asset_pair_type: Optional[str] = None
    pair_id: Optional[uuid.UUID] = None
    from_holder: Optional[str] = None
    from_domain_account: Optional[str] = None
    from_location: Optional[str] = None
    from_department: Optional[str] = None
    from_section: Optional[str] = None
    to_holder: Optional[str] = None
    to_domain_account: Optional[str] = None
    to_location: Optional[str] = None
    to_department: Optional[str] = None
    to_section: Optional[str] = None
    requested_by: Optional[uuid.UUID] = None
    requested_by_name: Optional[str] = None
    status: str
    request_date: datetime
    completion_date: Optional[datetime] = None
    comments: Optional[str] = None
    movement_form_path: Optional[str] = None

    class Config:
        from_attributes = True


class MovementFormLink(BaseModel):
    action_id: uuid.UUID
    path: str
    url: str
    expires_in: int

from pydantic import BaseModel, ConfigDict, Field, computed_field
from datetime import date, datetime
from typing import Optional

from collab.models.leave_policy import TrackUnit, AccrualType, RolloverType, ExportMode
from collab.models.leave_request import LeaveDuration, LeaveStatus


# --- Policies ---

class LeavePolicyBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    group: Optional[str] = None
    is_paid: bool
    track_in: TrackUnit
    is_hidden: bool = False
    export_mode: ExportMode = ExportMode.DO_NOT_EXPORT
    export_code: Optional[str] = None
    accrual_type: AccrualType
    accrual_amount: float = Field(default=0.0, ge=0)
    accrual_rate: float = Field(default=0.0, ge=0)
    deducts_leave: bool = True
    max_balance: Optional[float] = Field(default=None, gt=0)
    rollover_type: Optional[RolloverType] = None
    rollover_amount: Optional[float] = Field(default=None, gt=0)
    rollover_date: Optional[datetime] = None
    allow_outside_leave_year_request: bool = False
    use_average_working_hours: bool = False

class LeavePolicyCreate(LeavePolicyBase):
    workspace_id: str

class LeavePolicyUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    group: Optional[str] = None
    is_paid: Optional[bool] = None
    track_in: Optional[TrackUnit] = None
    is_hidden: Optional[bool] = None
    export_mode: Optional[ExportMode] = None
    export_code: Optional[str] = None
    accrual_type: Optional[AccrualType] = None
    accrual_amount: Optional[float] = Field(default=None, ge=0)
    accrual_rate: Optional[float] = Field(default=None, ge=0)
    deducts_leave: Optional[bool] = None
    max_balance: Optional[float] = Field(default=None, gt=0)
    rollover_type: Optional[RolloverType] = None
    rollover_amount: Optional[float] = Field(default=None, gt=0)
    rollover_date: Optional[datetime] = None
    allow_outside_leave_year_request: Optional[bool] = None
    use_average_working_hours: Optional[bool] = None

class LeavePolicySummary(BaseModel):
    """Picker projection handed to regular members."""
    id: str
    name: str
    group: Optional[str] = None
    is_paid: bool
    track_in: TrackUnit

    model_config = ConfigDict(from_attributes=True)

class LeavePolicyResponse(LeavePolicyBase):
    id: str
    workspace_id: str
    leave_request_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- Requests ---

class LeaveRequestCreate(BaseModel):
    policy_id: str
    start_date: date
    end_date: date
    duration: LeaveDuration = LeaveDuration.FULL_DAY
    notes: str = ""

class LeaveDecision(BaseModel):
    notes: Optional[str] = None

class LeaveUserBrief(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    image: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def avatar(self) -> Optional[str]:
        return self.image

class LeavePolicyBrief(BaseModel):
    name: str
    is_paid: bool
    track_in: TrackUnit
    workspace_id: str

    model_config = ConfigDict(from_attributes=True)

class LeaveRequestResponse(BaseModel):
    id: str
    user_id: str
    policy_id: str
    start_date: date
    end_date: date
    duration: LeaveDuration
    notes: str
    status: LeaveStatus
    reviewed_by_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[LeaveUserBrief] = None
    policy: Optional[LeavePolicyBrief] = None

    model_config = ConfigDict(from_attributes=True)

class LeaveRequestSummary(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    canceled: int = 0
    total: int = 0


# --- Balances ---

class LeaveBalanceResponse(BaseModel):
    policy_id: str
    policy_name: str
    track_in: TrackUnit
    year: int
    total_accrued: float
    total_used: float
    rollover: float
    balance: float


# Resolve forward references for Pydantic V2
LeavePolicyResponse.model_rebuild()
LeaveRequestResponse.model_rebuild()
LeaveBalanceResponse.model_rebuild()

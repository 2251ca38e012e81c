from sqlalchemy import Column, String, Float, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from collab.database import Base, generate_id


class TrackUnit(str, enum.Enum):
    HOURS = "HOURS"
    DAYS = "DAYS"


class AccrualType(str, enum.Enum):
    DOES_NOT_ACCRUE = "DOES_NOT_ACCRUE"
    HOURLY = "HOURLY"
    FIXED = "FIXED"
    REGULAR_WORKING_HOURS = "REGULAR_WORKING_HOURS"


class RolloverType(str, enum.Enum):
    NONE = "NONE"
    ENTIRE_BALANCE = "ENTIRE_BALANCE"
    PARTIAL_BALANCE = "PARTIAL_BALANCE"


class ExportMode(str, enum.Enum):
    DO_NOT_EXPORT = "DO_NOT_EXPORT"
    EXPORT_WITH_PAY_CONDITION = "EXPORT_WITH_PAY_CONDITION"
    EXPORT_WITH_CODE = "EXPORT_WITH_CODE"


class LeavePolicy(Base):
    __tablename__ = "leave_policies"
    __table_args__ = (UniqueConstraint("workspace_id", "name", name="uq_leave_policy_workspace_name"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    workspace_id = Column(String(36), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False, index=True)
    group = Column(String, nullable=True, index=True)
    is_paid = Column(Boolean, nullable=False, default=True)
    track_in = Column(String, nullable=False, default=TrackUnit.DAYS.value)
    is_hidden = Column(Boolean, nullable=False, default=False, index=True)
    export_mode = Column(String, nullable=False, default=ExportMode.DO_NOT_EXPORT.value)
    export_code = Column(String, nullable=True)

    accrual_type = Column(String, nullable=False, default=AccrualType.FIXED.value)
    accrual_amount = Column(Float, nullable=False, default=0.0)  # units per year (FIXED, DOES_NOT_ACCRUE)
    accrual_rate = Column(Float, nullable=False, default=0.0)  # units per worked hour (HOURLY, REGULAR_WORKING_HOURS)
    deducts_leave = Column(Boolean, nullable=False, default=True)
    max_balance = Column(Float, nullable=True)

    rollover_type = Column(String, nullable=True)
    rollover_amount = Column(Float, nullable=True)
    rollover_date = Column(DateTime(timezone=True), nullable=True)
    allow_outside_leave_year_request = Column(Boolean, nullable=False, default=False)
    use_average_working_hours = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    workspace = relationship("Workspace", back_populates="leave_policies")
    leave_requests = relationship("LeaveRequest", back_populates="policy", passive_deletes="all")
    balances = relationship("LeaveBalance", back_populates="policy", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<LeavePolicy {self.name} ({self.accrual_type})>"

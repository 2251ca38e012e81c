from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from collab.database import Base, generate_id


class LeaveBalance(Base):
    """
    Snapshot of the last balance recomputation for (user, policy, year).
    Reads always recompute from approved requests; this row is a cache.
    """
    __tablename__ = "leave_balances"
    __table_args__ = (UniqueConstraint("user_id", "policy_id", "year", name="uq_leave_balance_user_policy_year"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    policy_id = Column(String(36), ForeignKey("leave_policies.id", ondelete="CASCADE"), nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    total_accrued = Column(Float, default=0.0, nullable=False)
    total_used = Column(Float, default=0.0, nullable=False)
    balance = Column(Float, default=0.0, nullable=False)
    rollover = Column(Float, default=0.0, nullable=False)
    last_accrued_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    policy = relationship("LeavePolicy", back_populates="balances")

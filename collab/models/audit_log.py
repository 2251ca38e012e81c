from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func
from collab.database import Base, generate_id


class AuditLog(Base):
    """Append-only trail of leave mutations."""
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=generate_id)
    action = Column(String, nullable=False, index=True)
    entity_type = Column(String, nullable=False, index=True)
    entity_id = Column(String(36), nullable=True, index=True)
    user_id = Column(String(36), nullable=True, index=True)
    workspace_id = Column(String(36), nullable=True, index=True)
    details = Column(JSON, nullable=True)
    before_state = Column(JSON, nullable=True)
    after_state = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

"""
User model. Identity is owned by the upstream identity provider;
this table mirrors what the leave workflow needs to reference.
"""
from sqlalchemy import Column, String, Enum, DateTime, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from collab.database import Base, generate_id


class UserRole(str, enum.Enum):
    """
    Platform-level roles. Workspace capabilities come from WorkspaceRole;
    SYSTEM_ADMIN is the only platform role that bypasses workspace checks.
    """
    SYSTEM_ADMIN = "SYSTEM_ADMIN"
    HR = "HR"
    TEAM_LEAD = "TEAM_LEAD"
    DEVELOPER = "DEVELOPER"
    MEMBER = "MEMBER"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    image = Column(String, nullable=True)

    role = Column(Enum(UserRole), default=UserRole.MEMBER, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owned_workspaces = relationship("Workspace", back_populates="owner")
    memberships = relationship("WorkspaceMember", back_populates="user", cascade="all, delete-orphan")
    leave_requests = relationship(
        "LeaveRequest",
        foreign_keys="[LeaveRequest.user_id]",
        back_populates="user",
    )
    notifications = relationship(
        "Notification",
        foreign_keys="[Notification.user_id]",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<User {self.email}>"

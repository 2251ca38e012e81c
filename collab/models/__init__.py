# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    user, workspace, leave_policy, leave_request, leave_balance,
    notification, audit_log, webhook
)

# Explicit class exports for cleaner imports
from .user import User, UserRole
from .workspace import Workspace, WorkspaceMember, RolePermission, WorkspaceRole, Permission
from .leave_policy import LeavePolicy, TrackUnit, AccrualType, RolloverType, ExportMode
from .leave_request import LeaveRequest, LeaveStatus, LeaveDuration
from .leave_balance import LeaveBalance
from .notification import Notification, NotificationType
from .audit_log import AuditLog
from .webhook import WebhookSubscription, WebhookDelivery

__all__ = [
    "User",
    "UserRole",
    "Workspace",
    "WorkspaceMember",
    "RolePermission",
    "WorkspaceRole",
    "Permission",
    "LeavePolicy",
    "TrackUnit",
    "AccrualType",
    "RolloverType",
    "ExportMode",
    "LeaveRequest",
    "LeaveStatus",
    "LeaveDuration",
    "LeaveBalance",
    "Notification",
    "NotificationType",
    "AuditLog",
    "WebhookSubscription",
    "WebhookDelivery",
]

"""
Authorization gate for every leave operation.

Resolves the caller (from the identity provider's session email) to an
internal user, resolves workspace slugs to ids, and answers two questions:
may this user see the workspace at all (owner or active member), and does
this user hold a given capability in it (role -> permission grants).
All checks are read-only.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from collab.core.exceptions import (
    AuthenticationError,
    NotFoundError,
    AccessDeniedError,
    InsufficientPermissionError,
)
from collab.models.user import User, UserRole
from collab.models.workspace import (
    Workspace,
    WorkspaceMember,
    RolePermission,
    WorkspaceRole,
    Permission,
)
from collab.services.base import BaseService

# Grants written when a workspace is provisioned
DEFAULT_ROLE_PERMISSIONS: Dict[WorkspaceRole, List[Permission]] = {
    WorkspaceRole.OWNER: [Permission.MANAGE_LEAVE],
    WorkspaceRole.ADMIN: [Permission.MANAGE_LEAVE],
    WorkspaceRole.HR: [Permission.MANAGE_LEAVE],
}

NOT_A_MEMBER = "User is not a member of this workspace"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, injected by the boundary layer."""
    user_id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class PermissionCheckResult:
    has_permission: bool
    reason: Optional[str] = None
    role: Optional[str] = None


class AuthorizationService(BaseService):

    def resolve_actor(self, email: Optional[str]) -> Actor:
        if not email:
            raise AuthenticationError()
        user = self.db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
        if user is None or not user.is_active:
            self.log_warning("Session user not found", email=email)
            raise NotFoundError("User not found")
        return Actor(user_id=user.id, email=user.email)

    def resolve_workspace_id(self, workspace_slug_or_id: str) -> str:
        workspace_id = (
            self.db.query(Workspace.id)
            .filter(or_(Workspace.id == workspace_slug_or_id, Workspace.slug == workspace_slug_or_id))
            .scalar()
        )
        if workspace_id is None:
            raise NotFoundError("Workspace not found")
        return workspace_id

    def require_workspace_access(self, actor: Actor, workspace_id: str) -> Workspace:
        workspace = self.db.get(Workspace, workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace not found")
        if workspace.owner_id == actor.user_id:
            return workspace
        is_member = (
            self.db.query(WorkspaceMember.id)
            .filter(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == actor.user_id,
                WorkspaceMember.is_active.is_(True),
            )
            .first()
            is not None
        )
        if not is_member:
            raise AccessDeniedError()
        return workspace

    def check_user_permission(self, user_id: str, workspace_id: str, permission: Permission) -> PermissionCheckResult:
        user = self.db.get(User, user_id)
        if user is None:
            return PermissionCheckResult(False, reason="User not found")

        if user.role == UserRole.SYSTEM_ADMIN:
            return PermissionCheckResult(True, role=WorkspaceRole.OWNER.value)

        workspace = self.db.get(Workspace, workspace_id)
        if workspace is None:
            return PermissionCheckResult(False, reason="Workspace not found")
        if workspace.owner_id == user_id:
            return PermissionCheckResult(True, role=WorkspaceRole.OWNER.value)

        membership = (
            self.db.query(WorkspaceMember)
            .filter(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == user_id,
                WorkspaceMember.is_active.is_(True),
            )
            .first()
        )
        if membership is None:
            return PermissionCheckResult(False, reason=NOT_A_MEMBER)

        granted = (
            self.db.query(RolePermission.id)
            .filter(
                RolePermission.workspace_id == workspace_id,
                RolePermission.role == membership.role,
                RolePermission.permission == permission.value,
            )
            .first()
        )
        if granted is None:
            return PermissionCheckResult(
                False, reason="Permission not configured for this role", role=membership.role
            )
        return PermissionCheckResult(True, role=membership.role)

    def require_permission(self, actor: Actor, workspace_id: str, permission: Permission) -> PermissionCheckResult:
        result = self.check_user_permission(actor.user_id, workspace_id, permission)
        if not result.has_permission:
            self.log_warning(
                "Permission check failed",
                user_id=actor.user_id,
                workspace_id=workspace_id,
                permission=permission.value,
                reason=result.reason,
            )
            if result.reason == NOT_A_MEMBER:
                raise AccessDeniedError()
            raise InsufficientPermissionError(
                f"Insufficient permissions: {permission.value} required",
                permission=permission.value,
            )
        return result

    def find_user_ids_with_permission(self, workspace_id: str, permission: Permission) -> List[str]:
        """Owner plus every active member whose role is granted the permission."""
        workspace = self.db.get(Workspace, workspace_id)
        if workspace is None:
            return []
        granted_roles = select(RolePermission.role).where(
            RolePermission.workspace_id == workspace_id,
            RolePermission.permission == permission.value,
        )
        member_ids = [
            row.user_id
            for row in self.db.query(WorkspaceMember.user_id).filter(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.is_active.is_(True),
                WorkspaceMember.role.in_(granted_roles),
            )
        ]
        user_ids = [workspace.owner_id]
        user_ids.extend(uid for uid in member_ids if uid != workspace.owner_id)
        return user_ids


def seed_default_permissions(db: Session, workspace: Workspace) -> None:
    """Write DEFAULT_ROLE_PERMISSIONS for a workspace. Existing grants are kept."""
    existing = {
        (row.role, row.permission)
        for row in db.query(RolePermission.role, RolePermission.permission).filter(
            RolePermission.workspace_id == workspace.id
        )
    }
    for role, permissions in DEFAULT_ROLE_PERMISSIONS.items():
        for permission in permissions:
            if (role.value, permission.value) not in existing:
                db.add(RolePermission(workspace_id=workspace.id, role=role.value, permission=permission.value))
    db.flush()

"""
Leave Policy Store.

CRUD over workspace leave policies. Reads require workspace access;
writes require MANAGE_LEAVE. Two invariants are enforced at write time:
policy names are unique per workspace, and a policy referenced by any
leave request cannot be deleted.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from collab.core.exceptions import NotFoundError, ValidationError, ConflictError
from collab.models.leave_policy import LeavePolicy, ExportMode, RolloverType
from collab.models.leave_request import LeaveRequest
from collab.models.workspace import Permission
from collab.schemas.leave import LeavePolicyCreate, LeavePolicyUpdate
from collab.services.audit import AuditService
from collab.services.authorization import Actor, AuthorizationService
from collab.services.base import BaseService
from collab.services.pagination import build_pagination, validate_window

# Columns snapshotted into the audit trail
_AUDITED_FIELDS = ("name", "group", "is_paid", "track_in", "is_hidden", "accrual_type",
                   "accrual_amount", "accrual_rate", "max_balance", "rollover_type", "rollover_amount")

# Columns an update may change but never clear
_REQUIRED_FIELDS = frozenset(c.name for c in LeavePolicy.__table__.columns if not c.nullable)


def _enum_value(value):
    return value.value if hasattr(value, "value") else value


class LeavePolicyService(BaseService):

    def __init__(self, db, gate: Optional[AuthorizationService] = None):
        super().__init__(db)
        self.gate = gate or AuthorizationService(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_leave_policies(self, actor: Actor, workspace_id: str) -> List[LeavePolicy]:
        """Visible policies for pickers, name-sorted."""
        self.gate.require_workspace_access(actor, workspace_id)
        return (
            self.db.query(LeavePolicy)
            .filter(LeavePolicy.workspace_id == workspace_id, LeavePolicy.is_hidden.is_(False))
            .order_by(LeavePolicy.name.asc())
            .all()
        )

    def list_policies(
        self,
        actor: Actor,
        workspace_slug_or_id: str,
        take: int = 10,
        skip: int = 0,
        search: Optional[str] = None,
        group: Optional[str] = None,
        include_hidden: bool = False,
    ) -> Dict[str, Any]:
        validate_window(take, skip)
        workspace_id = self.gate.resolve_workspace_id(workspace_slug_or_id)
        self.gate.require_workspace_access(actor, workspace_id)

        query = self.db.query(LeavePolicy).filter(LeavePolicy.workspace_id == workspace_id)
        if not include_hidden:
            query = query.filter(LeavePolicy.is_hidden.is_(False))
        if search:
            query = query.filter(func.lower(LeavePolicy.name).contains(search.lower(), autoescape=True))
        if group:
            query = query.filter(LeavePolicy.group == group)

        total = query.count()
        policies = query.order_by(LeavePolicy.name.asc()).offset(skip).limit(take).all()
        return {"data": policies, "pagination": build_pagination(total, take, skip)}

    def get_policy(self, actor: Actor, policy_id: str) -> LeavePolicy:
        policy = self._get_policy_or_404(policy_id)
        self.gate.require_workspace_access(actor, policy.workspace_id)
        policy.leave_request_count = self.count_requests(policy.id)
        return policy

    def count_requests(self, policy_id: str) -> int:
        return (
            self.db.query(func.count(LeaveRequest.id))
            .filter(LeaveRequest.policy_id == policy_id)
            .scalar()
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_policy(self, actor: Actor, data: LeavePolicyCreate) -> LeavePolicy:
        workspace_id = self.gate.resolve_workspace_id(data.workspace_id)
        self.gate.require_permission(actor, workspace_id, Permission.MANAGE_LEAVE)

        values = {k: _enum_value(v) for k, v in data.model_dump(exclude={"workspace_id"}).items()}
        self._validate_policy_values(values)
        self._ensure_unique_name(workspace_id, values["name"])

        policy = LeavePolicy(workspace_id=workspace_id, **values)
        self.db.add(policy)
        self._flush_or_conflict(values["name"])
        AuditService.log(
            self.db,
            action="create_leave_policy",
            entity_type="leave_policy",
            entity_id=policy.id,
            user_id=actor.user_id,
            details={"name": policy.name},
            workspace_id=workspace_id,
            after_state=self._snapshot(policy),
        )
        self.commit()
        self.db.refresh(policy)
        policy.leave_request_count = 0
        self.log_info("Leave policy created", policy_id=policy.id, workspace_id=workspace_id)
        return policy

    def update_policy(self, actor: Actor, policy_id: str, data: LeavePolicyUpdate) -> LeavePolicy:
        policy = self._get_policy_or_404(policy_id)
        self.gate.require_permission(actor, policy.workspace_id, Permission.MANAGE_LEAVE)

        changes = {k: _enum_value(v) for k, v in data.model_dump(exclude_unset=True).items()}
        cleared = sorted(field for field, value in changes.items() if value is None and field in _REQUIRED_FIELDS)
        if cleared:
            raise ValidationError(f"Fields cannot be null: {', '.join(cleared)}", details={"fields": cleared})
        merged = {field: getattr(policy, field) for field in ("export_mode", "export_code",
                                                              "rollover_type", "rollover_amount")}
        merged.update(changes)
        self._validate_policy_values(merged)
        if "name" in changes and changes["name"] != policy.name:
            self._ensure_unique_name(policy.workspace_id, changes["name"], exclude_id=policy.id)

        before = self._snapshot(policy)
        for field, value in changes.items():
            setattr(policy, field, value)
        self._flush_or_conflict(policy.name)
        AuditService.log(
            self.db,
            action="update_leave_policy",
            entity_type="leave_policy",
            entity_id=policy.id,
            user_id=actor.user_id,
            details={"fields": sorted(changes)},
            workspace_id=policy.workspace_id,
            before_state=before,
            after_state=self._snapshot(policy),
        )
        self.commit()
        self.db.refresh(policy)
        policy.leave_request_count = self.count_requests(policy.id)
        return policy

    def delete_policy(self, actor: Actor, policy_id: str) -> None:
        policy = self._get_policy_or_404(policy_id)
        self.gate.require_permission(actor, policy.workspace_id, Permission.MANAGE_LEAVE)

        in_use = self.count_requests(policy.id)
        if in_use > 0:
            raise ConflictError(
                "Cannot delete policy that is used in leave requests",
                details={"leave_request_count": in_use},
            )

        AuditService.log(
            self.db,
            action="delete_leave_policy",
            entity_type="leave_policy",
            entity_id=policy.id,
            user_id=actor.user_id,
            details={"name": policy.name},
            workspace_id=policy.workspace_id,
            before_state=self._snapshot(policy),
        )
        self.db.delete(policy)
        self.commit()
        self.log_info("Leave policy deleted", policy_id=policy_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_policy_or_404(self, policy_id: str) -> LeavePolicy:
        policy = self.db.get(LeavePolicy, policy_id)
        if policy is None:
            raise NotFoundError("Leave policy not found")
        return policy

    def _ensure_unique_name(self, workspace_id: str, name: str, exclude_id: Optional[str] = None):
        query = self.db.query(LeavePolicy.id).filter(
            LeavePolicy.workspace_id == workspace_id,
            LeavePolicy.name == name,
        )
        if exclude_id:
            query = query.filter(LeavePolicy.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(f"A leave policy named '{name}' already exists in this workspace")

    def _flush_or_conflict(self, name: str):
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            if "unique" not in str(e.orig).lower():
                raise
            raise ConflictError(f"A leave policy named '{name}' already exists in this workspace") from e

    @staticmethod
    def _validate_policy_values(values: Dict[str, Any]):
        if values.get("export_mode") == ExportMode.EXPORT_WITH_CODE.value and not values.get("export_code"):
            raise ValidationError("Export code is required when export mode is EXPORT_WITH_CODE")
        if values.get("rollover_type") == RolloverType.PARTIAL_BALANCE.value and not values.get("rollover_amount"):
            raise ValidationError("Rollover amount is required when rollover type is PARTIAL_BALANCE")

    @staticmethod
    def _snapshot(policy: LeavePolicy) -> Dict[str, Any]:
        return {field: getattr(policy, field) for field in _AUDITED_FIELDS}

"""
Leave Request Lifecycle.

State machine for a single leave request:

    PENDING --approve--> APPROVED
    PENDING --reject---> REJECTED
    PENDING --cancel---> CANCELED

Terminal states have no exits. Every operation takes an explicit ``Actor``
and runs the authorization gate before touching state. Transitions use a
conditional update (``WHERE status = 'PENDING'``) so two reviewers racing on
the same request cannot both win; the loser gets ``StateError`` and fires no
side effects.

Ordering inside a transition: gate -> conditional update + audit -> commit
-> side effects. Side effects (balance snapshot, notifications, webhook) are
best-effort and reported through ``TransitionResult.side_effect_outcomes``.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy import case, func
from sqlalchemy.orm import Session, joinedload

from collab.core.exceptions import NotFoundError, ValidationError, StateError
from collab.models.leave_policy import LeavePolicy
from collab.models.leave_request import LeaveRequest, LeaveStatus
from collab.models.workspace import Permission, Workspace
from collab.schemas.leave import LeaveRequestCreate
from collab.services.audit import AuditService
from collab.services.authorization import Actor, AuthorizationService
from collab.services.base import BaseService
from collab.services.leave_balance import LeaveBalanceService
from collab.services.notification import NotificationService
from collab.services.pagination import build_pagination, validate_window
from collab.services.side_effects import TransitionResult, run_side_effect
from collab.services.webhooks import WebhookEmitter, build_leave_event_payload

# Manager queue order: PENDING first, then by declaration order
_STATUS_ORDER = case(
    {status.value: index for index, status in enumerate(LeaveStatus)},
    value=LeaveRequest.status,
    else_=len(LeaveStatus),
)


class LeaveService(BaseService):

    def __init__(
        self,
        db: Session,
        gate: Optional[AuthorizationService] = None,
        notifier: Optional[NotificationService] = None,
        webhooks: Optional[WebhookEmitter] = None,
        balances: Optional[LeaveBalanceService] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ):
        super().__init__(db)
        self.gate = gate or AuthorizationService(db)
        self.notifier = notifier or NotificationService(db)
        self.webhooks = webhooks or WebhookEmitter(db, background_tasks=background_tasks)
        self.balances = balances or LeaveBalanceService(db)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_leave_request(self, actor: Actor, data: LeaveRequestCreate) -> TransitionResult[LeaveRequest]:
        if data.start_date > data.end_date:
            raise ValidationError("Start date must be on or before end date")

        policy = self.db.get(LeavePolicy, data.policy_id)
        if policy is None:
            raise NotFoundError("Leave policy not found")
        self.gate.require_workspace_access(actor, policy.workspace_id)

        if data.start_date.year != data.end_date.year and not policy.allow_outside_leave_year_request:
            raise ValidationError("Leave requests cannot span two leave years under this policy")

        leave = LeaveRequest(
            user_id=actor.user_id,
            policy_id=policy.id,
            start_date=data.start_date,
            end_date=data.end_date,
            duration=data.duration.value,
            notes=data.notes,
            status=LeaveStatus.PENDING.value,
        )
        self.db.add(leave)
        self.db.flush()
        AuditService.log(
            self.db,
            action="create_leave_request",
            entity_type="leave_request",
            entity_id=leave.id,
            user_id=actor.user_id,
            details={"policy_id": policy.id, "duration": leave.duration},
            workspace_id=policy.workspace_id,
            after_state={"status": leave.status},
        )
        self.commit()
        self.db.refresh(leave)
        self.log_info("Leave request created", request_id=leave.id, user_id=actor.user_id)

        outcomes = [
            run_side_effect(
                "notify_leave_submission",
                self.notifier.notify_leave_submission,
                leave,
                on_error=self.db.rollback,
            )
        ]
        return TransitionResult(leave, outcomes)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def approve_leave_request(self, actor: Actor, request_id: str,
                              notes: Optional[str] = None) -> TransitionResult[LeaveRequest]:
        leave = self._authorize_review(actor, request_id)
        self._apply_transition(actor, leave, LeaveStatus.APPROVED, notes)

        outcomes = [
            run_side_effect(
                "recalculate_balance",
                self._recalculate_balances,
                leave,
                on_error=self.db.rollback,
            ),
            run_side_effect(
                "notify_leave_status_change",
                self.notifier.notify_leave_status_change,
                leave,
                LeaveStatus.APPROVED.value,
                actor.user_id,
                on_error=self.db.rollback,
            ),
            run_side_effect(
                "emit_leave_created",
                self._emit_leave_created,
                actor,
                leave,
                on_error=self.db.rollback,
            ),
        ]
        return TransitionResult(leave, outcomes)

    def reject_leave_request(self, actor: Actor, request_id: str,
                             notes: Optional[str] = None) -> TransitionResult[LeaveRequest]:
        leave = self._authorize_review(actor, request_id)
        self._apply_transition(actor, leave, LeaveStatus.REJECTED, notes)

        # Rejected time was never counted as used: no balance work
        outcomes = [
            run_side_effect(
                "notify_leave_status_change",
                self.notifier.notify_leave_status_change,
                leave,
                LeaveStatus.REJECTED.value,
                actor.user_id,
                on_error=self.db.rollback,
            ),
        ]
        return TransitionResult(leave, outcomes)

    def cancel_leave_request(self, actor: Actor, request_id: str,
                             notes: Optional[str] = None) -> TransitionResult[LeaveRequest]:
        """The requester, or anyone holding MANAGE_LEAVE, may cancel a pending request."""
        leave = self._get_request_or_404(request_id)
        workspace_id = leave.policy.workspace_id
        if leave.user_id == actor.user_id:
            self.gate.require_workspace_access(actor, workspace_id)
        else:
            self.gate.require_permission(actor, workspace_id, Permission.MANAGE_LEAVE)
        self._ensure_pending(leave)
        self._apply_transition(actor, leave, LeaveStatus.CANCELED, notes)

        outcomes = [
            run_side_effect(
                "notify_leave_status_change",
                self.notifier.notify_leave_status_change,
                leave,
                LeaveStatus.CANCELED.value,
                actor.user_id,
                on_error=self.db.rollback,
            ),
        ]
        return TransitionResult(leave, outcomes)

    def _authorize_review(self, actor: Actor, request_id: str) -> LeaveRequest:
        """Gate for approve/reject: request exists, caller manages its workspace, still pending."""
        leave = self._get_request_or_404(request_id)
        self.gate.require_permission(actor, leave.policy.workspace_id, Permission.MANAGE_LEAVE)
        self._ensure_pending(leave)
        return leave

    def _apply_transition(self, actor: Actor, leave: LeaveRequest, target: LeaveStatus,
                          notes: Optional[str]) -> LeaveRequest:
        now = datetime.now(timezone.utc)
        updated = (
            self.db.query(LeaveRequest)
            .filter(
                LeaveRequest.id == leave.id,
                LeaveRequest.status == LeaveStatus.PENDING.value,
            )
            .update(
                {
                    LeaveRequest.status: target.value,
                    LeaveRequest.reviewed_by_id: actor.user_id,
                    LeaveRequest.reviewed_at: now,
                    LeaveRequest.review_notes: notes,
                    LeaveRequest.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        if updated != 1:
            self.db.rollback()
            self.db.refresh(leave)
            self.log_warning(
                "Concurrent leave transition lost",
                request_id=leave.id,
                target_status=target.value,
                current_status=leave.status,
            )
            raise StateError(
                f"Leave request is no longer pending (current status: {leave.status})",
                current_status=leave.status,
            )

        AuditService.log(
            self.db,
            action=f"{target.value.lower()}_leave_request",
            entity_type="leave_request",
            entity_id=leave.id,
            user_id=actor.user_id,
            details={"notes": notes, "policy_id": leave.policy_id},
            workspace_id=leave.policy.workspace_id,
            before_state={"status": LeaveStatus.PENDING.value},
            after_state={"status": target.value},
        )
        self.commit()
        self.db.refresh(leave)
        self.log_info(
            "Leave request transitioned",
            request_id=leave.id,
            status=target.value,
            actor_id=actor.user_id,
        )
        return leave

    def _recalculate_balances(self, leave: LeaveRequest) -> List[float]:
        # A cross-year request draws on each leave year it touches
        return [
            self.balances.recalculate_balance(leave.user_id, leave.policy, year).balance
            for year in range(leave.start_date.year, leave.end_date.year + 1)
        ]

    def _emit_leave_created(self, actor: Actor, leave: LeaveRequest) -> str:
        workspace = self.db.get(Workspace, leave.policy.workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace not found")
        return self.webhooks.emit_leave_created(
            build_leave_event_payload(leave),
            {
                "userId": actor.user_id,
                "workspaceId": workspace.id,
                "workspaceName": workspace.name,
                "workspaceSlug": workspace.slug,
                "source": "leave-service",
            },
            run_async=True,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_user_leave_requests(self, actor: Actor, workspace_slug_or_id: str) -> List[LeaveRequest]:
        workspace_id = self.gate.resolve_workspace_id(workspace_slug_or_id)
        self.gate.require_workspace_access(actor, workspace_id)
        return (
            self._workspace_query(workspace_id)
            .filter(LeaveRequest.user_id == actor.user_id)
            .order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
            .all()
        )

    def get_workspace_leave_requests(self, actor: Actor, workspace_slug_or_id: str) -> List[LeaveRequest]:
        workspace_id = self._require_manager(actor, workspace_slug_or_id)
        return self._manager_queue(self._workspace_query(workspace_id)).all()

    def get_paginated_workspace_leave_requests(
        self,
        actor: Actor,
        workspace_slug_or_id: str,
        take: int = 10,
        skip: int = 0,
        status: Optional[LeaveStatus] = None,
    ) -> Dict[str, Any]:
        validate_window(take, skip)
        workspace_id = self._require_manager(actor, workspace_slug_or_id)

        query = self._workspace_query(workspace_id)
        if status is not None:
            query = query.filter(LeaveRequest.status == LeaveStatus(status).value)
        total = query.count()
        rows = self._manager_queue(query).offset(skip).limit(take).all()
        return {"data": rows, "pagination": build_pagination(total, take, skip)}

    def get_workspace_leave_requests_summary(self, actor: Actor, workspace_slug_or_id: str) -> Dict[str, int]:
        workspace_id = self._require_manager(actor, workspace_slug_or_id)
        counts = dict(
            self.db.query(LeaveRequest.status, func.count(LeaveRequest.id))
            .join(LeavePolicy, LeaveRequest.policy_id == LeavePolicy.id)
            .filter(LeavePolicy.workspace_id == workspace_id)
            .group_by(LeaveRequest.status)
            .all()
        )
        summary = {status.value.lower(): counts.get(status.value, 0) for status in LeaveStatus}
        summary["total"] = sum(counts.values())
        return summary

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_request_or_404(self, request_id: str) -> LeaveRequest:
        leave = (
            self.db.query(LeaveRequest)
            .options(joinedload(LeaveRequest.policy), joinedload(LeaveRequest.user))
            .filter(LeaveRequest.id == request_id)
            .first()
        )
        if leave is None:
            raise NotFoundError("Leave request not found")
        return leave

    @staticmethod
    def _ensure_pending(leave: LeaveRequest):
        if leave.status != LeaveStatus.PENDING.value:
            raise StateError(
                f"Leave request already processed (status: {leave.status})",
                current_status=leave.status,
            )

    def _require_manager(self, actor: Actor, workspace_slug_or_id: str) -> str:
        workspace_id = self.gate.resolve_workspace_id(workspace_slug_or_id)
        self.gate.require_permission(actor, workspace_id, Permission.MANAGE_LEAVE)
        return workspace_id

    def _workspace_query(self, workspace_id: str):
        return (
            self.db.query(LeaveRequest)
            .join(LeavePolicy, LeaveRequest.policy_id == LeavePolicy.id)
            .options(joinedload(LeaveRequest.user), joinedload(LeaveRequest.policy))
            .filter(LeavePolicy.workspace_id == workspace_id)
        )

    @staticmethod
    def _manager_queue(query):
        return query.order_by(_STATUS_ORDER, LeaveRequest.created_at.desc(), LeaveRequest.id.desc())

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from collab.models.leave_request import LeaveRequest, LeaveStatus
from collab.models.notification import Notification, NotificationType
from collab.models.workspace import Permission
from collab.services.authorization import AuthorizationService

logger = logging.getLogger(__name__)

_ACTION_VERBS = {
    "SUBMITTED": "submitted",
    LeaveStatus.APPROVED.value: "approved",
    LeaveStatus.REJECTED.value: "rejected",
    LeaveStatus.CANCELED.value: "canceled",
}


class NotificationService:
    """
    In-app notifications for the leave workflow.
    Callers treat every method as fire-and-forget and catch failures.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_notification(
        self,
        user_id: str,
        type: NotificationType,
        content: str,
        sender_id: Optional[str] = None,
        leave_request_id: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            sender_id=sender_id,
            type=type.value,
            content=content,
            leave_request_id=leave_request_id,
        )
        self.db.add(notification)
        return notification

    def should_bounce(self, user_id: str, content: str) -> bool:
        """Skip a notification identical to the recipient's most recent one."""
        latest = (
            self.db.query(Notification.content)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .first()
        )
        return latest is not None and latest.content == content

    @staticmethod
    def build_leave_content(request: LeaveRequest, action: str) -> str:
        requester = request.user.name or request.user.email
        verb = _ACTION_VERBS.get(action, action.lower())
        if request.start_date == request.end_date:
            period = request.start_date.isoformat()
        else:
            period = f"{request.start_date.isoformat()} to {request.end_date.isoformat()}"
        return f"{request.policy.name} request by {requester} for {period} was {verb}"

    def find_managers(self, workspace_id: str) -> List[str]:
        return AuthorizationService(self.db).find_user_ids_with_permission(workspace_id, Permission.MANAGE_LEAVE)

    def notify_leave_submission(self, request: LeaveRequest) -> List[Notification]:
        """Alert every leave manager in the workspace except the requester."""
        created = self._notify_managers(request, "SUBMITTED")
        self.db.commit()
        logger.info(
            "Leave request submission notifications sent",
            extra={"request_id": request.id, "recipients": len(created)},
        )
        return created

    def notify_leave_status_change(self, request: LeaveRequest, status: str, actor_id: str) -> List[Notification]:
        """
        APPROVED / REJECTED always go to the requester. A cancellation by the
        requester alerts the managers instead.
        """
        status = status.upper()
        if status == LeaveStatus.CANCELED.value and actor_id == request.user_id:
            created = self._notify_managers(request, status)
        else:
            created = self._notify_requester(request, status, actor_id)
        self.db.commit()
        logger.info(
            f"Leave request {status.lower()} notification sent",
            extra={"request_id": request.id, "actor_id": actor_id, "recipients": len(created)},
        )
        return created

    def _notify_requester(self, request: LeaveRequest, status: str, actor_id: str) -> List[Notification]:
        content = self.build_leave_content(request, status)
        if self.should_bounce(request.user_id, content):
            return []
        return [
            self.create_notification(
                user_id=request.user_id,
                type=NotificationType.LEAVE_REQUEST_STATUS_CHANGED,
                content=content,
                sender_id=actor_id,
                leave_request_id=request.id,
            )
        ]

    def _notify_managers(self, request: LeaveRequest, action: str) -> List[Notification]:
        content = self.build_leave_content(request, action)
        recipients = [
            uid for uid in self.find_managers(request.policy.workspace_id)
            if uid != request.user_id and not self.should_bounce(uid, content)
        ]
        return [
            self.create_notification(
                user_id=uid,
                type=NotificationType.LEAVE_REQUEST_MANAGER_ALERT,
                content=content,
                sender_id=request.user_id,
                leave_request_id=request.id,
            )
            for uid in recipients
        ]

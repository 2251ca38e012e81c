"""
Outbound webhook emission for leave events.

Events are signed JSON POSTs to the workspace's active subscriptions.
Delivery is best-effort: each attempt is recorded, nothing is retried,
and no failure propagates to the caller.
"""
import json
import logging
import time
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests
from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from collab.core.config import settings
from collab.core.security import decrypt_data, sign_payload, signature_header
from collab.models.leave_request import LeaveRequest, LeaveDuration
from collab.models.webhook import WebhookSubscription, WebhookDelivery

logger = logging.getLogger(__name__)

LEAVE_CREATED = "leave.created"


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def build_leave_event_payload(request: LeaveRequest, tz: Optional[str] = None) -> Dict[str, Any]:
    """
    Normalized leave payload shared with external consumers (camelCase keys).
    Half-day requests carry synthetic working-day times.
    """
    is_all_day = request.duration == LeaveDuration.FULL_DAY.value
    payload = {
        "id": request.id,
        "userId": request.user_id,
        "workspaceId": request.policy.workspace_id,
        "startDate": _iso(request.start_date),
        "endDate": _iso(request.end_date),
        "isAllDay": is_all_day,
        "status": request.status.lower(),
        "type": request.policy.name,
        "reason": request.notes,
        "notes": request.notes,
        "timezone": tz or settings.leave.default_timezone,
        "updatedAt": _iso(request.updated_at),
    }
    if not is_all_day:
        payload["startTime"] = settings.leave.half_day_start
        payload["endTime"] = settings.leave.half_day_end
    return payload


class WebhookEmitter:

    def __init__(
        self,
        db: Session,
        background_tasks: Optional[BackgroundTasks] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        http_post: Callable[..., requests.Response] = requests.post,
    ):
        self.db = db
        self.background_tasks = background_tasks
        self.session_factory = session_factory
        self.http_post = http_post

    def emit_leave_created(self, payload: Dict[str, Any], context: Dict[str, Any], run_async: bool = True) -> str:
        return self.emit(LEAVE_CREATED, payload, context, run_async=run_async)

    def emit(self, event_type: str, payload: Dict[str, Any], context: Dict[str, Any], run_async: bool = True) -> str:
        """
        Build the event envelope and deliver it to every matching subscription.
        With ``run_async`` and a BackgroundTasks container, delivery happens after
        the response is sent, on its own session. Returns the event id.
        """
        event = {
            "id": str(uuid.uuid4()),
            "type": event_type,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "data": payload,
            "context": context,
        }
        workspace_id = context.get("workspaceId") or payload.get("workspaceId")
        if run_async and self.background_tasks is not None:
            self.background_tasks.add_task(self._deliver_in_new_session, workspace_id, event)
            logger.info("Webhook event scheduled", extra={"event_id": event["id"], "event_type": event_type})
        else:
            self.deliver_event(self.db, workspace_id, event)
        return event["id"]

    def _deliver_in_new_session(self, workspace_id: str, event: Dict[str, Any]):
        # The request-scoped session is closed by the time background tasks run
        if self.session_factory is None:
            from collab.database import SessionLocal
            factory = SessionLocal
        else:
            factory = self.session_factory
        db = factory()
        try:
            self.deliver_event(db, workspace_id, event)
        except Exception as e:
            logger.error(f"Webhook background delivery failed for event {event['id']}: {e}", exc_info=True)
        finally:
            db.close()

    def deliver_event(self, db: Session, workspace_id: str, event: Dict[str, Any]) -> List[WebhookDelivery]:
        subscriptions = (
            db.query(WebhookSubscription)
            .filter(
                WebhookSubscription.workspace_id == workspace_id,
                WebhookSubscription.is_active.is_(True),
            )
            .all()
        )
        deliveries = [
            self._deliver(db, subscription, event)
            for subscription in subscriptions
            if event["type"] in (subscription.event_types or [])
        ]
        db.commit()
        return deliveries

    def _deliver(self, db: Session, subscription: WebhookSubscription, event: Dict[str, Any]) -> WebhookDelivery:
        body = json.dumps(event, separators=(",", ":"))
        timestamp = int(time.time())
        delivery = WebhookDelivery(
            subscription_id=subscription.id,
            event_id=event["id"],
            event_type=event["type"],
        )
        try:
            secret = decrypt_data(subscription.secret_enc)
            headers = {
                "Content-Type": "application/json",
                "User-Agent": settings.webhooks.user_agent,
                "X-Collab-Signature": signature_header(sign_payload(body, secret, timestamp), timestamp),
                "X-Collab-Event-Type": event["type"],
                "X-Collab-Event-ID": event["id"],
                "X-Collab-Timestamp": str(timestamp),
            }
            response = self.http_post(
                subscription.url,
                data=body,
                headers=headers,
                timeout=settings.webhooks.timeout_seconds,
            )
            delivery.status_code = response.status_code
            delivery.response_body = (response.text or "")[: settings.webhooks.max_response_chars]
            delivery.success = 200 <= response.status_code < 300
        except (requests.RequestException, ValueError) as e:
            delivery.success = False
            delivery.error = str(e)
        log = logger.info if delivery.success else logger.warning
        log(
            f"Webhook delivery {'succeeded' if delivery.success else 'failed'}",
            extra={
                "event_id": event["id"],
                "subscription_id": subscription.id,
                "status_code": delivery.status_code,
            },
        )
        db.add(delivery)
        return delivery

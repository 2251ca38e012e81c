from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from collab.core.exceptions import NotFoundError
from collab.database import get_db
from collab.models.notification import Notification
from collab.routers.auth_deps import get_current_actor
from collab.schemas.common import MessageResponse
from collab.schemas.notification import NotificationResponse
from collab.services.authorization import Actor

router = APIRouter(prefix="/notifications", tags=["Notifications"])

@router.get("", response_model=List[NotificationResponse])
def get_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    query = db.query(Notification).filter(Notification.user_id == actor.user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(50).all()

@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == actor.user_id
    ).first()

    if not notification:
        raise NotFoundError("Notification not found")

    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification

@router.post("/mark-all-read", response_model=MessageResponse)
def mark_all_notifications_as_read(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor)
):
    db.query(Notification).filter(
        Notification.user_id == actor.user_id,
        Notification.is_read.is_(False)
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return {"message": "All notifications marked as read"}

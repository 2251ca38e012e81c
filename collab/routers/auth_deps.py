"""
Request identity.

Authentication happens upstream: the identity provider forwards the
session email in ``settings.identity_header``. These dependencies turn
that email into an ``Actor`` that every service call receives explicitly.
"""
import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from collab.core.config import settings
from collab.database import get_db
from collab.services.authorization import Actor, AuthorizationService

logger = logging.getLogger(__name__)


def get_session_email(request: Request) -> Optional[str]:
    email = request.headers.get(settings.identity_header)
    return email.strip().lower() if email else None


def get_current_actor(
    email: Optional[str] = Depends(get_session_email),
    db: Session = Depends(get_db),
) -> Actor:
    """Raises AuthenticationError (401) without a session, NotFoundError (404) for unknown users."""
    if not email:
        logger.info("Request without session identity rejected")
    return AuthorizationService(db).resolve_actor(email)

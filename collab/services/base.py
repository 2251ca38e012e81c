import logging
from typing import Optional
from sqlalchemy.orm import Session


class BaseService:
    """
    Shared plumbing for service classes: the request-scoped session,
    an optional workspace context and a module logger.
    """

    def __init__(self, db: Session, workspace_id: Optional[str] = None):
        self.db = db
        self.workspace_id = workspace_id
        self._logger = logging.getLogger(self.__class__.__module__)

    def log_info(self, message: str, **extra):
        self._logger.info(message, extra=extra or None)

    def log_warning(self, message: str, **extra):
        self._logger.warning(message, extra=extra or None)

    def commit(self):
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.notification import Notification
from ..models.user import User

logger = logging.getLogger(__name__)

LIST_LIMIT = 200


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        *,
        title: str,
        message: str,
        recipient_user_id: Optional[int] = None,
        recipient_role: Optional[str] = None,
        type: str = "system",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Notification]:
        """Write one notification, best-effort.

        Call only after the primary change has been committed: a failure here
        is logged and swallowed, never propagated.
        """
        if not title or not message:
            return None
        if recipient_user_id is None and not recipient_role:
            return None

        try:
            if recipient_user_id is None and not self._role_has_members(recipient_role):
                logger.debug(f"No users with role '{recipient_role}', skipping notification '{title}'")
                return None

            notification = Notification(
                recipient_id=str(recipient_user_id) if recipient_user_id is not None else None,
                recipient_role=str(recipient_role) if recipient_role else None,
                type=str(type),
                title=str(title),
                message=str(message),
                meta=metadata,
                is_read=False,
            )
            self.db.add(notification)
            self.db.commit()
            return notification
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to insert notification '{title}'")
            return None

    def list_for_user(self, user: User) -> List[Notification]:
        """Direct and role-wide notifications visible to a user, newest first."""
        return (
            self._visible_to(user)
            .order_by(Notification.created_at.desc())
            .limit(LIST_LIMIT)
            .all()
        )

    def mark_all_read(self, user: User) -> int:
        updated = (
            self._visible_to(user)
            .filter(or_(Notification.is_read.is_(False), Notification.read_at.is_(None)))
            .all()
        )
        now = datetime.utcnow()
        for notification in updated:
            notification.is_read = True
            notification.read_at = notification.read_at or now
        self.db.commit()
        return len(updated)

    def mark_read(self, user: User, notification_id: str) -> Notification:
        notification = self._get_visible(user, notification_id)
        notification.is_read = True
        notification.read_at = notification.read_at or datetime.utcnow()
        self.db.commit()
        return notification

    def delete(self, user: User, notification_id: str) -> None:
        notification = self._get_visible(user, notification_id)
        self.db.delete(notification)
        self.db.commit()

    def delete_for_recipient(self, user_id: int) -> int:
        """Remove notifications addressed directly to a user (before deleting them)."""
        return (
            self.db.query(Notification)
            .filter(Notification.recipient_id == str(user_id))
            .delete(synchronize_session=False)
        )

    def recent_for_role(self, role: str, limit: int = 10) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.recipient_role == role)
            .order_by(Notification.created_at.desc())
            .limit(limit)
            .all()
        )

    def _visible_to(self, user: User):
        return self.db.query(Notification).filter(
            or_(
                Notification.recipient_id == str(user.id),
                Notification.recipient_role == user.role,
            )
        )

    def _get_visible(self, user: User, notification_id: str) -> Notification:
        notification = self._visible_to(user).filter(Notification.id == notification_id).first()
        if not notification:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Notification not found"
            )
        return notification

    def _role_has_members(self, role: str) -> bool:
        return self.db.query(User.id).filter(User.role == role).first() is not None

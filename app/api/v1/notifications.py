from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_user
from ...services.notification_service import NotificationService
from ...schemas.notification import NotificationResponse
from ...models.user import User

router = APIRouter(prefix="/notifications", tags=["Notifications"])

@router.get("")
async def list_notifications(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Notifications addressed to the caller or to the caller's role."""
    notifications = NotificationService(db).list_for_user(current_user)
    return {
        "success": True,
        "data": [NotificationResponse.from_model(n) for n in notifications],
    }

@router.post("/mark-all-read")
async def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    updated = NotificationService(db).mark_all_read(current_user)
    return {
        "success": True,
        "message": "All notifications marked as read",
        "data": {"updated": updated},
    }

@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    NotificationService(db).mark_read(current_user, notification_id)
    return {"success": True, "message": "Notification marked as read"}

@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    NotificationService(db).delete(current_user, notification_id)
    return {"success": True, "message": "Notification deleted"}

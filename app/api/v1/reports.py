from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...api.deps import get_admin_user
from ...services.report_service import ReportService
from ...models.user import User

router = APIRouter(prefix="/reports", tags=["Reports"])

@router.get("/analytics")
async def analytics(
    period: Optional[str] = "month",
    db: Session = Depends(get_db),
    _: User = Depends(get_admin_user)
):
    """Admin dashboard KPIs, trends and recent activity for a period."""
    return {"success": True, "data": ReportService(db).analytics(period)}

@router.get("/system-status")
async def system_status(
    db: Session = Depends(get_db),
    _: User = Depends(get_admin_user)
):
    return {"success": True, "data": ReportService(db).system_status()}

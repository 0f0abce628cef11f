from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...api.deps import get_admin_user
from ...services.registry_service import RegistryService
from ...models.user import User

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("/registry")
async def doctor_registry(
    q: Optional[str] = None,
    status: Optional[str] = "all",
    specialization: Optional[str] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_admin_user)
):
    """Doctor users joined with their profile rows (admin only)."""
    stats, rows = RegistryService(db).doctor_registry(
        q=q, status_filter=status, specialization=specialization
    )
    return {"success": True, "stats": stats, "data": rows}

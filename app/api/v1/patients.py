from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...core.security import UserRole
from ...api.deps import require_role
from ...services.registry_service import RegistryService
from ...models.user import User

router = APIRouter(prefix="/patients", tags=["Patients"])

@router.get("/registry")
async def patient_registry(
    q: Optional[str] = None,
    status: Optional[str] = "all",
    db: Session = Depends(get_db),
    _: User = Depends(require_role(UserRole.ADMIN, UserRole.DOCTOR))
):
    """Patient users joined with their profile rows."""
    stats, rows = RegistryService(db).patient_registry(q=q, status_filter=status)
    return {"success": True, "stats": stats, "data": rows}

@router.get("/lookup")
async def lookup_patient(
    patient_id: Optional[str] = Query(None, alias="patientId"),
    health_id: Optional[str] = Query(None, alias="healthId"),
    nic: Optional[str] = None,
    rfid: Optional[str] = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_role(
        UserRole.ADMIN, UserRole.DOCTOR, UserRole.PHARMACIST, UserRole.LAB_TECHNICIAN
    ))
):
    """Find a single patient by health id, NIC or RFID tag."""
    patient = RegistryService(db).lookup_patient(
        patient_id=patient_id or health_id, nic=nic, rfid=rfid
    )
    return {"success": True, "data": patient}

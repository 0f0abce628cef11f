from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...core.security import UserRole, AuthorizationError
from ...api.deps import get_current_user, require_role
from ...services.prescription_service import PrescriptionService
from ...schemas.prescription import PrescriptionCreate, PrescriptionStatusUpdate
from ...models.patient import Patient
from ...models.user import User

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_prescription(
    data: PrescriptionCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_role(UserRole.DOCTOR, UserRole.ADMIN))
):
    """Write a prescription header and its items in one transaction."""
    prescription = PrescriptionService(db).create_prescription(data)
    return {
        "success": True,
        "message": "Prescription created successfully",
        "data": {"id": prescription.id},
    }

@router.get("")
async def list_prescriptions(
    patient_id: Optional[str] = Query(None, alias="patientId"),
    doctor_id: Optional[str] = Query(None, alias="doctorId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    prescriptions = PrescriptionService(db).list_prescriptions(
        current_user, patient_id=patient_id, doctor_id=doctor_id
    )
    return {"success": True, "data": prescriptions}

@router.get("/{prescription_id}")
async def get_prescription(
    prescription_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = PrescriptionService(db)
    prescription = service.get_prescription(prescription_id)

    if current_user.role == UserRole.PATIENT.value:
        own = db.query(Patient).filter(Patient.user_id == current_user.id).first()
        if not own or own.id != prescription.patient_id:
            raise AuthorizationError("Forbidden")

    return {"success": True, "data": service.to_response(prescription)}

@router.patch("/{prescription_id}/status")
async def update_prescription_status(
    prescription_id: str,
    data: PrescriptionStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(
        UserRole.PHARMACIST, UserRole.DOCTOR, UserRole.ADMIN
    ))
):
    """Change a prescription's status; dispensing stamps who and when."""
    service = PrescriptionService(db)
    prescription = service.update_status(prescription_id, data, current_user)
    return {
        "success": True,
        "message": "Prescription status updated successfully",
        "data": service.to_response(prescription),
    }

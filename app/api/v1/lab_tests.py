from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...core.security import UserRole, AuthorizationError
from ...api.deps import get_current_user, require_role
from ...services.lab_test_service import LabTestService
from ...schemas.lab_test import LabTestCreate, LabTestCreated, LabTestResultsUpload
from ...models.patient import Patient
from ...models.user import User

router = APIRouter(prefix="/lab-tests", tags=["Lab Tests"])

lab_staff = require_role(UserRole.LAB_TECHNICIAN, UserRole.ADMIN)
ordering_staff = require_role(UserRole.DOCTOR, UserRole.ADMIN)

@router.post("", status_code=status.HTTP_201_CREATED)
async def order_lab_tests(
    data: LabTestCreate,
    db: Session = Depends(get_db),
    _: User = Depends(ordering_staff)
):
    """Order one or more lab tests for a patient."""
    ids = LabTestService(db).create_lab_tests(data)
    return {
        "success": True,
        "message": "Lab tests created successfully",
        "data": LabTestCreated(ids=ids),
    }

@router.get("")
async def list_lab_tests(
    patient_id: Optional[str] = Query(None, alias="patientId"),
    doctor_id: Optional[str] = Query(None, alias="doctorId"),
    status: Optional[str] = None,
    appointment_id: Optional[str] = Query(None, alias="appointmentId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    lab_tests = LabTestService(db).list_lab_tests(
        current_user,
        patient_id=patient_id,
        doctor_id=doctor_id,
        status_filter=status,
        appointment_id=appointment_id,
    )
    return {"success": True, "data": lab_tests}

@router.get("/{lab_test_id}")
async def get_lab_test(
    lab_test_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = LabTestService(db)
    lab_test = service.get_lab_test(lab_test_id)

    if current_user.role == UserRole.PATIENT.value:
        own = db.query(Patient).filter(Patient.user_id == current_user.id).first()
        if not own or own.id != lab_test.patient_id:
            raise AuthorizationError("Forbidden")

    return {"success": True, "data": service.to_response(lab_test)}

@router.post("/{lab_test_id}/results")
async def upload_results(
    lab_test_id: str,
    data: LabTestResultsUpload,
    db: Session = Depends(get_db),
    current_user: User = Depends(lab_staff)
):
    """Store results and complete the test."""
    service = LabTestService(db)
    lab_test = service.upload_results(lab_test_id, data, current_user)
    return {
        "success": True,
        "message": "Lab results uploaded successfully",
        "data": service.to_response(lab_test),
    }

@router.patch("/{lab_test_id}/complete")
async def complete_lab_test(
    lab_test_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(lab_staff)
):
    service = LabTestService(db)
    lab_test = service.complete(lab_test_id, current_user)
    return {
        "success": True,
        "message": "Lab test marked as completed",
        "data": service.to_response(lab_test),
    }

@router.delete("/{lab_test_id}")
async def delete_lab_test(
    lab_test_id: str,
    db: Session = Depends(get_db),
    _: User = Depends(ordering_staff)
):
    LabTestService(db).delete_lab_test(lab_test_id)
    return {"success": True, "message": "Lab test deleted successfully"}

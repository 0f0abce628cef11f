from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...core.security import UserRole, AuthorizationError
from ...api.deps import get_current_user, get_admin_user
from ...services.appointment_service import AppointmentService
from ...schemas.appointment import (
    AppointmentCreate, AppointmentUpdate, AppointmentStatusUpdate, CancellationDecision
)
from ...models.user import User

router = APIRouter(prefix="/appointments", tags=["Appointments"])

def _check_access(service: AppointmentService, appointment, user: User) -> None:
    if user.role == UserRole.PATIENT.value and not service.is_participant(appointment, user):
        raise AuthorizationError("Forbidden")

@router.get("/doctors/available")
async def available_doctors(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user)
):
    """Active doctors that can be booked."""
    return {"success": True, "data": AppointmentService(db).available_doctors()}

@router.get("")
async def list_appointments(
    patient_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List appointments; patients only ever see their own."""
    if current_user.role == UserRole.PATIENT.value:
        patient_id = str(current_user.id)

    appointments = AppointmentService(db).list_appointments(
        patient_id=patient_id, doctor_id=doctor_id, status_filter=status
    )
    return {"success": True, "data": appointments}

@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = AppointmentService(db)
    appointment = service.get_appointment(appointment_id)
    _check_access(service, appointment, current_user)
    return {"success": True, "data": service.to_response(appointment)}

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_appointment(
    data: AppointmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Book an appointment; it starts out pending."""
    service = AppointmentService(db)
    appointment = service.create_appointment(data, current_user)
    return {
        "success": True,
        "message": "Appointment created successfully",
        "data": service.to_response(appointment),
    }

@router.patch("/{appointment_id}/status")
async def update_appointment_status(
    appointment_id: str,
    data: AppointmentStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Move an appointment through its workflow."""
    service = AppointmentService(db)
    _check_access(service, service.get_appointment(appointment_id), current_user)

    appointment = service.update_status(appointment_id, data, current_user)
    return {
        "success": True,
        "message": "Appointment status updated successfully",
        "data": service.to_response(appointment),
    }

@router.post("/{appointment_id}/cancellation/decision")
async def decide_cancellation(
    appointment_id: str,
    data: CancellationDecision,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin_user)
):
    """Approve or reject a pending cancellation request (admin only)."""
    service = AppointmentService(db)
    message, appointment = service.decide_cancellation(appointment_id, data, current_user)
    return {"success": True, "message": message, "data": service.to_response(appointment)}

@router.put("/{appointment_id}")
async def update_appointment(
    appointment_id: str,
    data: AppointmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = AppointmentService(db)
    _check_access(service, service.get_appointment(appointment_id), current_user)

    appointment = service.update_appointment(appointment_id, data)
    return {
        "success": True,
        "message": "Appointment updated successfully",
        "data": service.to_response(appointment),
    }

@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    _: User = Depends(get_admin_user)
):
    """Delete an appointment (admin only)."""
    deleted = AppointmentService(db).delete_appointment(appointment_id)
    return {"success": True, "message": "Appointment deleted successfully", "data": deleted}

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, joinedload

from ..core.security import UserRole
from ..models.appointment import Appointment, AppointmentStatus, can_transition
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..models.user import User
from ..schemas.appointment import (
    AppointmentCreate, AppointmentUpdate, AppointmentStatusUpdate,
    CancellationDecision, AppointmentResponse, AvailableDoctor
)
from .lookup import resolve_patient, resolve_doctor
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

ADMIN = UserRole.ADMIN.value

# Statuses a patient may move their own appointment to
PATIENT_STATUS_TARGETS = {AppointmentStatus.CANCEL_REQUESTED, AppointmentStatus.CANCELLED}

# NOT NULL columns; a null in a partial update leaves them as they are
REQUIRED_FIELDS = ("appointment_date", "appointment_time", "reason")


def _clean(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _format_when(appointment: Appointment) -> Tuple[str, str]:
    return (
        appointment.appointment_date.isoformat(),
        appointment.appointment_time.strftime("%H:%M"),
    )


class AppointmentService:
    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    # Queries

    def list_appointments(
        self,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        status_filter: Optional[str] = None,
    ) -> List[AppointmentResponse]:
        query = self._base_query()

        if patient_id:
            patient = resolve_patient(self.db, patient_id)
            if not patient:
                return []
            query = query.filter(Appointment.patient_id == patient.id)

        if doctor_id:
            doctor = resolve_doctor(self.db, doctor_id)
            if not doctor:
                return []
            query = query.filter(Appointment.doctor_id == doctor.id)

        if status_filter:
            query = query.filter(Appointment.status == status_filter)

        appointments = query.order_by(
            Appointment.appointment_date.desc(),
            Appointment.appointment_time.desc(),
        ).all()
        return [self.to_response(a) for a in appointments]

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self._base_query().filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Appointment not found"
            )
        return appointment

    def available_doctors(self) -> List[AvailableDoctor]:
        rows = (
            self.db.query(Doctor, User)
            .join(User, User.id == Doctor.user_id)
            .filter(User.role == UserRole.DOCTOR.value, User.is_active.is_(True))
            .order_by(User.first_name, User.last_name)
            .all()
        )
        return [
            AvailableDoctor(
                id=doctor.id,
                user_id=user.id,
                first_name=user.first_name,
                last_name=user.last_name,
                email=user.email,
                specialization=doctor.specialization,
            )
            for doctor, user in rows
        ]

    # Mutations

    def create_appointment(self, data: AppointmentCreate, actor: User) -> Appointment:
        if not (data.patient_id and data.doctor_id and data.appointment_date
                and data.appointment_time and (data.reason or "").strip()):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing required fields: patient_id, doctor_id, appointment_date, "
                       "appointment_time, and reason are required"
            )

        patient = resolve_patient(self.db, data.patient_id)
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid patient_id (must be patient.id or patient.user_id)"
            )

        doctor = resolve_doctor(self.db, data.doctor_id)
        if not doctor:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid doctor_id (must be doctor.id or doctor.user_id)"
            )

        if actor.role == UserRole.PATIENT.value and patient.user_id != actor.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Patients can only book appointments for themselves"
            )

        appointment = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            status=AppointmentStatus.PENDING.value,
            reason=data.reason,
            notes=data.notes or None,
        )
        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)

        day, at = _format_when(appointment)
        meta = {
            "event": "appointment_created",
            "appointmentId": appointment.id,
            "patientId": patient.id,
            "doctorId": doctor.id,
        }
        self.notifications.notify(
            recipient_role=ADMIN,
            title="New appointment request",
            message=f"A new appointment was booked for {day} at {at}.",
            metadata=meta,
        )
        self.notifications.notify(
            recipient_user_id=doctor.user_id,
            title="New appointment request",
            message=f"You have a new appointment request for {day} at {at}.",
            metadata=meta,
        )
        self.notifications.notify(
            recipient_user_id=patient.user_id,
            title="Appointment request submitted",
            message=f"Your appointment request was submitted for {day} at {at}.",
            metadata=meta,
        )

        logger.info(f"Created appointment {appointment.id} for patient {patient.id} with doctor {doctor.id}")
        return self.get_appointment(appointment.id)

    def update_status(self, appointment_id: str, data: AppointmentStatusUpdate, actor: User) -> Appointment:
        if not data.status:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Status is required"
            )
        try:
            new_status = AppointmentStatus(data.status)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid status. Must be one of: "
                       + ", ".join(s.value for s in AppointmentStatus)
            )

        if actor.role == UserRole.PATIENT.value and new_status not in PATIENT_STATUS_TARGETS:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Patients can only request or cancel an appointment"
            )

        appointment = self.get_appointment(appointment_id)
        if not can_transition(appointment.status, new_status.value):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Cannot change appointment status from {appointment.status} to {new_status.value}"
            )

        now = datetime.utcnow()
        actor_id = str(actor.id)
        cancellation_reason = _clean(data.cancellation_reason)

        appointment.status = new_status.value
        appointment.updated_at = now

        visit_time = _clean(data.actual_visit_time)
        if visit_time:
            appointment.actual_visit_time = visit_time
        visit_notes = _clean(data.visit_notes)
        if visit_notes:
            appointment.visit_notes = visit_notes

        if new_status is AppointmentStatus.CONFIRMED:
            appointment.approved_at = now
            appointment.approved_by = actor_id
        elif new_status is AppointmentStatus.COMPLETED:
            appointment.completed_at = now
            appointment.completed_by = actor_id
        elif new_status is AppointmentStatus.CANCELLED:
            appointment.cancelled_at = now
            appointment.cancelled_by = actor_id
        elif new_status is AppointmentStatus.CANCEL_REQUESTED:
            appointment.cancellation_requested_at = now
            appointment.cancellation_requested_by = actor_id
            appointment.cancellation_rejected_reason = None
            if cancellation_reason:
                appointment.cancellation_reason = cancellation_reason

        self.db.commit()
        logger.info(f"Appointment {appointment.id} moved to {new_status.value} by user {actor.id}")

        self._notify_status_change(appointment, new_status, actor, cancellation_reason)
        return self.get_appointment(appointment.id)

    def decide_cancellation(self, appointment_id: str, data: CancellationDecision, actor: User) -> Tuple[str, Appointment]:
        if data.decision not in ("approve", "reject"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="decision must be 'approve' or 'reject'"
            )

        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.status == AppointmentStatus.CANCEL_REQUESTED.value,
        ).first()
        if not appointment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Cancellation request not found (appointment is not in cancel_requested state)"
            )

        now = datetime.utcnow()
        patient_user_id, doctor_user_id = self._participants(appointment)

        if data.decision == "approve":
            appointment.status = AppointmentStatus.CANCELLED.value
            appointment.cancelled_at = now
            appointment.cancelled_by = str(actor.id)
            appointment.updated_at = now
            self.db.commit()

            meta = {"event": "appointment_cancel_approved", "appointmentId": appointment.id}
            self.notifications.notify(
                recipient_user_id=doctor_user_id,
                title="Cancellation approved",
                message="Admin approved the cancellation request.",
                metadata=meta,
            )
            self.notifications.notify(
                recipient_user_id=patient_user_id,
                title="Appointment cancelled",
                message="Admin approved the cancellation. Your appointment is cancelled.",
                metadata=meta,
            )
            return "Cancellation approved", self.get_appointment(appointment.id)

        # Rejected: back to confirmed if it had been approved, otherwise pending
        rejection_reason = _clean(data.rejection_reason)
        appointment.status = (
            AppointmentStatus.CONFIRMED.value if appointment.approved_at
            else AppointmentStatus.PENDING.value
        )
        appointment.cancellation_rejected_reason = rejection_reason
        appointment.updated_at = now
        self.db.commit()

        meta = {
            "event": "appointment_cancel_rejected",
            "appointmentId": appointment.id,
            "rejectionReason": rejection_reason,
        }
        self.notifications.notify(
            recipient_user_id=doctor_user_id,
            title="Cancellation rejected",
            message=(
                f"Admin rejected the cancellation request. Reason: {rejection_reason}"
                if rejection_reason else "Admin rejected the cancellation request."
            ),
            metadata=meta,
        )
        self.notifications.notify(
            recipient_user_id=patient_user_id,
            title="Cancellation rejected",
            message="Admin rejected the cancellation request. The appointment is still scheduled.",
            metadata=meta,
        )
        return "Cancellation rejected", self.get_appointment(appointment.id)

    def update_appointment(self, appointment_id: str, data: AppointmentUpdate) -> Appointment:
        changes: Dict[str, Any] = data.model_dump(exclude_unset=True)
        if not changes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No fields to update"
            )

        appointment = self.get_appointment(appointment_id)
        for field, value in changes.items():
            if field in REQUIRED_FIELDS and value is None:
                continue
            setattr(appointment, field, value)
        appointment.updated_at = datetime.utcnow()

        self.db.commit()
        return self.get_appointment(appointment.id)

    def delete_appointment(self, appointment_id: str) -> AppointmentResponse:
        appointment = self.get_appointment(appointment_id)

        # Capture what the notifications need before the row is gone
        snapshot = self.to_response(appointment)
        patient_user_id, doctor_user_id = self._participants(appointment)
        day, at = _format_when(appointment)

        self.db.delete(appointment)
        self.db.commit()

        message = f"An appointment was removed for {day} {at}."
        meta = {"event": "appointment_deleted", "appointmentId": appointment_id}
        for user_id in (patient_user_id, doctor_user_id):
            self.notifications.notify(
                recipient_user_id=user_id,
                title="Appointment removed",
                message=message,
                metadata=meta,
            )
        self.notifications.notify(
            recipient_role=ADMIN,
            title="Appointment removed",
            message=message,
            metadata=meta,
        )
        return snapshot

    # Helpers

    def to_response(self, appointment: Appointment) -> AppointmentResponse:
        response = AppointmentResponse.model_validate(appointment)
        patient_user = appointment.patient.user if appointment.patient else None
        doctor = appointment.doctor
        doctor_user = doctor.user if doctor else None

        if patient_user:
            response.patient_first_name = patient_user.first_name
            response.patient_last_name = patient_user.last_name
        if doctor_user:
            response.doctor_first_name = doctor_user.first_name
            response.doctor_last_name = doctor_user.last_name
        if doctor:
            response.doctor_specialization = doctor.specialization
        return response

    def is_participant(self, appointment: Appointment, user: User) -> bool:
        return user.id in self._participants(appointment)

    def _base_query(self):
        return self.db.query(Appointment).options(
            joinedload(Appointment.patient).joinedload(Patient.user),
            joinedload(Appointment.doctor).joinedload(Doctor.user),
        )

    def _participants(self, appointment: Appointment) -> Tuple[Optional[int], Optional[int]]:
        patient_user_id = appointment.patient.user_id if appointment.patient else None
        doctor_user_id = appointment.doctor.user_id if appointment.doctor else None
        return patient_user_id, doctor_user_id

    def _notify_status_change(
        self,
        appointment: Appointment,
        new_status: AppointmentStatus,
        actor: User,
        cancellation_reason: Optional[str],
    ) -> None:
        patient_user_id, doctor_user_id = self._participants(appointment)
        meta = {
            "event": "appointment_status_changed",
            "appointmentId": appointment.id,
            "status": new_status.value,
        }

        if new_status is AppointmentStatus.CONFIRMED:
            meta["event"] = "appointment_confirmed"
            self.notifications.notify(
                recipient_user_id=patient_user_id,
                title="Appointment approved",
                message="Your appointment has been approved by the doctor.",
                metadata=meta,
            )
            self.notifications.notify(
                recipient_role=ADMIN,
                title="Appointment approved",
                message="A doctor approved an appointment.",
                metadata=meta,
            )

        elif new_status is AppointmentStatus.COMPLETED:
            meta["event"] = "appointment_completed"
            self.notifications.notify(
                recipient_user_id=patient_user_id,
                title="Appointment completed",
                message="Your appointment has been marked as completed.",
                metadata=meta,
            )
            self.notifications.notify(
                recipient_role=ADMIN,
                title="Appointment completed",
                message="A doctor completed an appointment.",
                metadata=meta,
            )

        elif new_status is AppointmentStatus.CANCEL_REQUESTED:
            meta["event"] = "appointment_cancel_requested"
            self.notifications.notify(
                recipient_role=ADMIN,
                title="Cancellation requested",
                message=(
                    f"A cancellation was requested. Reason: {cancellation_reason}"
                    if cancellation_reason else "A cancellation was requested."
                ),
                metadata=meta,
            )
            self.notifications.notify(
                recipient_user_id=patient_user_id,
                title="Cancellation requested",
                message="The doctor requested to cancel an appointment. Admin review is pending.",
                metadata=meta,
            )

        elif new_status is AppointmentStatus.CANCELLED:
            meta["event"] = "appointment_cancelled"
            meta["cancelledBy"] = str(actor.id)
            message = (
                "Admin cancelled the appointment." if actor.role == ADMIN
                else "The appointment has been cancelled."
            )
            for user_id in (patient_user_id, doctor_user_id):
                self.notifications.notify(
                    recipient_user_id=user_id,
                    title="Appointment cancelled",
                    message=message,
                    metadata=meta,
                )
            self.notifications.notify(
                recipient_role=ADMIN,
                title="Appointment cancelled",
                message="An appointment was cancelled.",
                metadata=meta,
            )

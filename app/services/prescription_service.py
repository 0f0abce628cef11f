from datetime import date, datetime
from typing import List, Optional
import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.security import UserRole
from ..models.patient import Patient
from ..models.prescription import Prescription, PrescriptionItem, PrescriptionStatus
from ..models.user import User
from ..schemas.prescription import (
    PrescriptionCreate, PrescriptionResponse, PrescriptionStatusUpdate
)
from .lookup import resolve_patient, resolve_doctor, patient_names, doctor_names
from .notification_service import NotificationService, LIST_LIMIT

logger = logging.getLogger(__name__)


def _required(value: Optional[str]) -> str:
    return value.strip() if value else ""


def _quantity(value) -> Optional[int]:
    if value is None or value == "":
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


class PrescriptionService:
    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    def create_prescription(self, data: PrescriptionCreate) -> Prescription:
        if not data.patient_id or not data.doctor_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="patientId and doctorId are required"
            )
        if not data.items:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="At least one prescription item is required"
            )

        doctor = resolve_doctor(self.db, data.doctor_id)
        if not doctor:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Doctor record not found for doctorId"
            )
        patient = resolve_patient(self.db, data.patient_id)
        if not patient:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Patient record not found for patientId"
            )

        prescription = Prescription(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_id=data.appointment_id,
            diagnosis=data.diagnosis or None,
            notes=data.notes or None,
            prescription_date=data.prescription_date or date.today(),
            expiry_date=data.expiry_date,
            status=data.status or PrescriptionStatus.ACTIVE.value,
        )

        for position, item in enumerate(data.items):
            medicine_name = _required(item.medicine_name)
            dosage = _required(item.dosage)
            frequency = _required(item.frequency)
            duration = _required(item.duration)
            if not (medicine_name and dosage and frequency and duration):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Each item requires medicineName, dosage, frequency, and duration"
                )
            prescription.items.append(PrescriptionItem(
                position=position,
                medicine_id=item.medicine_id,
                medicine_name=medicine_name,
                dosage=dosage,
                frequency=frequency,
                duration=duration,
                quantity=_quantity(item.quantity),
                instructions=item.instructions or None,
            ))

        # Header and items commit together or not at all
        try:
            self.db.add(prescription)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error creating prescription")
            raise
        self.db.refresh(prescription)

        self.notifications.notify(
            recipient_user_id=patient.user_id,
            title="New prescription",
            message=(
                f"A new prescription was issued: {prescription.diagnosis}"
                if prescription.diagnosis else "A new prescription was issued for you."
            ),
            metadata={
                "event": "prescription_created",
                "prescriptionId": prescription.id,
                "doctorId": doctor.id,
            },
        )

        logger.info(f"Created prescription {prescription.id} with {len(prescription.items)} item(s)")
        return prescription

    def list_prescriptions(
        self,
        actor: User,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
    ) -> List[PrescriptionResponse]:
        query = self.db.query(Prescription).options(selectinload(Prescription.items))

        if actor.role == UserRole.PATIENT.value:
            own = self.db.query(Patient).filter(Patient.user_id == actor.id).first()
            if not own:
                return []
            query = query.filter(Prescription.patient_id == own.id)
        elif patient_id:
            patient = resolve_patient(self.db, patient_id)
            if not patient:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Patient record not found for patientId"
                )
            query = query.filter(Prescription.patient_id == patient.id)

        if doctor_id:
            doctor = resolve_doctor(self.db, doctor_id)
            if not doctor:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Doctor record not found for doctorId"
                )
            query = query.filter(Prescription.doctor_id == doctor.id)

        prescriptions = (
            query.order_by(Prescription.created_at.desc())
            .limit(LIST_LIMIT)
            .all()
        )
        return self.to_responses(prescriptions)

    def get_prescription(self, prescription_id: str) -> Prescription:
        prescription = self.db.query(Prescription).filter(Prescription.id == prescription_id).first()
        if not prescription:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Prescription not found"
            )
        return prescription

    def update_status(self, prescription_id: str, data: PrescriptionStatusUpdate, actor: User) -> Prescription:
        try:
            new_status = PrescriptionStatus(data.status)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid status. Must be one of: "
                       + ", ".join(s.value for s in PrescriptionStatus)
            )

        prescription = self.get_prescription(prescription_id)
        prescription.status = new_status.value
        prescription.updated_at = datetime.utcnow()
        if new_status is PrescriptionStatus.DISPENSED:
            prescription.dispensed_at = datetime.utcnow()
            prescription.dispensed_by = str(actor.id)
        self.db.commit()
        self.db.refresh(prescription)

        patient = self.db.query(Patient).filter(Patient.id == prescription.patient_id).first()
        if patient:
            self.notifications.notify(
                recipient_user_id=patient.user_id,
                title="Prescription dispensed" if new_status is PrescriptionStatus.DISPENSED
                else "Prescription updated",
                message=f"Your prescription is now {new_status.value}.",
                metadata={
                    "event": "prescription_status_changed",
                    "prescriptionId": prescription.id,
                    "status": new_status.value,
                },
            )
        return prescription

    def to_responses(self, prescriptions: List[Prescription]) -> List[PrescriptionResponse]:
        doctors = doctor_names(self.db, (p.doctor_id for p in prescriptions))
        patients = patient_names(self.db, (p.patient_id for p in prescriptions))

        responses = []
        for prescription in prescriptions:
            response = PrescriptionResponse.model_validate(prescription)
            response.doctor_name = doctors.get(prescription.doctor_id)
            response.patient_name = patients.get(prescription.patient_id)
            responses.append(response)
        return responses

    def to_response(self, prescription: Prescription) -> PrescriptionResponse:
        return self.to_responses([prescription])[0]

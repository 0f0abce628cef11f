from datetime import date, datetime
from typing import List, Optional
import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.security import UserRole
from ..models.doctor import Doctor
from ..models.lab_test import LabTest, LabTestStatus, LabTestPriority
from ..models.patient import Patient
from ..models.user import User
from ..schemas.lab_test import LabTestCreate, LabTestResponse, LabTestResultsUpload
from .lookup import (
    resolve_patient, resolve_doctor, lab_technician_for_user, patient_names, doctor_names
)
from .notification_service import NotificationService, LIST_LIMIT

logger = logging.getLogger(__name__)


def build_notes(
    priority: Optional[str] = None,
    category: Optional[str] = None,
    instructions: Optional[str] = None,
    additional_notes: Optional[str] = None,
) -> Optional[str]:
    """Fold the order details into one notes field, one line per part."""
    parts = []
    if priority:
        parts.append(f"Priority: {priority}")
    if category:
        parts.append(f"Category: {category}")
    if instructions:
        parts.append(f"Instructions: {instructions}")
    if additional_notes:
        parts.append(f"Notes: {additional_notes}")
    return "\n".join(parts).strip() or None


class LabTestService:
    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    def create_lab_tests(self, data: LabTestCreate) -> List[str]:
        if not data.patient_id or not data.doctor_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="patientId and doctorId are required"
            )
        if not data.tests:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="At least one lab test is required"
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

        priority = (data.priority or "").strip().lower() or None
        if priority and priority not in {p.value for p in LabTestPriority}:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid priority. Must be one of: "
                       + ", ".join(p.value for p in LabTestPriority)
            )

        lab_tests = []
        for test in data.tests:
            test_name = (test.test_name or "").strip()
            test_type = (test.test_type or "").strip()
            if not test_name or not test_type:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Each test requires testName and testType"
                )
            lab_tests.append(LabTest(
                patient_id=patient.id,
                doctor_id=doctor.id,
                appointment_id=data.appointment_id,
                test_type=test_type,
                test_name=test_name,
                status=data.status or LabTestStatus.PENDING.value,
                priority=priority,
                request_date=date.today(),
                is_abnormal=False,
                notes=build_notes(
                    priority=priority,
                    category=(test.category or "").strip(),
                    instructions=test.instructions,
                    additional_notes=data.additional_notes,
                ),
            ))

        try:
            self.db.add_all(lab_tests)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Error creating lab tests")
            raise

        ids = [lab_test.id for lab_test in lab_tests]
        names = ", ".join(lab_test.test_name for lab_test in lab_tests)
        meta = {"event": "lab_tests_ordered", "labTestIds": ids, "priority": priority}

        self.notifications.notify(
            recipient_role=UserRole.LAB_TECHNICIAN.value,
            title="New lab test order",
            message=f"{len(ids)} lab test(s) ordered: {names}.",
            metadata=meta,
        )
        self.notifications.notify(
            recipient_user_id=patient.user_id,
            title="Lab test ordered",
            message=f"Your doctor ordered: {names}.",
            metadata=meta,
        )

        logger.info(f"Created {len(ids)} lab test(s) for patient {patient.id}")
        return ids

    def list_lab_tests(
        self,
        actor: User,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
        status_filter: Optional[str] = None,
        appointment_id: Optional[str] = None,
    ) -> List[LabTestResponse]:
        query = self.db.query(LabTest)

        if actor.role == UserRole.PATIENT.value:
            own = self.db.query(Patient).filter(Patient.user_id == actor.id).first()
            if not own:
                return []
            query = query.filter(LabTest.patient_id == own.id)
        elif patient_id:
            patient = resolve_patient(self.db, patient_id)
            if not patient:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Patient record not found for patientId"
                )
            query = query.filter(LabTest.patient_id == patient.id)

        if doctor_id:
            doctor = resolve_doctor(self.db, doctor_id)
            if not doctor:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Doctor record not found for doctorId"
                )
            query = query.filter(LabTest.doctor_id == doctor.id)

        if status_filter:
            query = query.filter(LabTest.status == status_filter)
        if appointment_id:
            query = query.filter(LabTest.appointment_id == appointment_id)

        lab_tests = query.order_by(LabTest.created_at.desc()).limit(LIST_LIMIT).all()
        return self.to_responses(lab_tests)

    def get_lab_test(self, lab_test_id: str) -> LabTest:
        lab_test = self.db.query(LabTest).filter(LabTest.id == lab_test_id).first()
        if not lab_test:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Lab test not found"
            )
        return lab_test

    def upload_results(self, lab_test_id: str, data: LabTestResultsUpload, actor: User) -> LabTest:
        lab_test = self.get_lab_test(lab_test_id)

        technician = lab_technician_for_user(self.db, actor.id)
        if technician:
            lab_test.lab_technician_id = technician.id
        lab_test.results = data.results
        lab_test.is_abnormal = bool(data.is_abnormal)
        lab_test.result_file_url = data.result_file_url or None
        lab_test.status = LabTestStatus.COMPLETED.value
        lab_test.completion_date = datetime.utcnow()
        lab_test.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(lab_test)

        patient_user_id, doctor_user_id = self._participants(lab_test)
        meta = {
            "event": "lab_results_uploaded",
            "labTestId": lab_test.id,
            "isAbnormal": lab_test.is_abnormal,
        }
        self.notifications.notify(
            recipient_user_id=patient_user_id,
            title="Lab results available",
            message=f"Results for {lab_test.test_name} are ready.",
            metadata=meta,
        )
        self.notifications.notify(
            recipient_user_id=doctor_user_id,
            title="Lab results available",
            message=f"Results for {lab_test.test_name} have been uploaded.",
            metadata=meta,
        )
        if lab_test.is_abnormal:
            self.notifications.notify(
                recipient_user_id=doctor_user_id,
                title="Abnormal lab result",
                message=f"Results for {lab_test.test_name} were flagged as abnormal.",
                metadata=meta,
            )

        logger.info(f"Uploaded results for lab test {lab_test.id} (abnormal={lab_test.is_abnormal})")
        return lab_test

    def complete(self, lab_test_id: str, actor: User) -> LabTest:
        lab_test = self.get_lab_test(lab_test_id)
        technician = lab_technician_for_user(self.db, actor.id)
        if technician and not lab_test.lab_technician_id:
            lab_test.lab_technician_id = technician.id
        lab_test.status = LabTestStatus.COMPLETED.value
        lab_test.completion_date = lab_test.completion_date or datetime.utcnow()
        lab_test.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(lab_test)
        return lab_test

    def delete_lab_test(self, lab_test_id: str) -> None:
        lab_test = self.get_lab_test(lab_test_id)
        self.db.delete(lab_test)
        self.db.commit()
        logger.info(f"Deleted lab test {lab_test_id}")

    def to_responses(self, lab_tests: List[LabTest]) -> List[LabTestResponse]:
        doctors = doctor_names(self.db, (t.doctor_id for t in lab_tests))
        patients = patient_names(self.db, (t.patient_id for t in lab_tests))

        responses = []
        for lab_test in lab_tests:
            response = LabTestResponse.model_validate(lab_test)
            response.doctor_name = doctors.get(lab_test.doctor_id)
            response.patient_name = patients.get(lab_test.patient_id)
            responses.append(response)
        return responses

    def to_response(self, lab_test: LabTest) -> LabTestResponse:
        return self.to_responses([lab_test])[0]

    def _participants(self, lab_test: LabTest):
        patient = self.db.query(Patient).filter(Patient.id == lab_test.patient_id).first()
        doctor = self.db.query(Doctor).filter(Doctor.id == lab_test.doctor_id).first()
        return (
            patient.user_id if patient else None,
            doctor.user_id if doctor else None,
        )

from typing import List, Optional, Tuple
import logging

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.security import UserRole
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..models.user import User
from ..schemas.common import RegistryStats
from ..schemas.registry import PatientRegistryEntry, DoctorRegistryEntry

logger = logging.getLogger(__name__)


def mask_rfid(value: Optional[str]) -> Optional[str]:
    """Hide all but the last four characters of an RFID tag."""
    if not value:
        return None
    value = str(value)
    if len(value) <= 4:
        return value
    return "*" * (len(value) - 4) + value[-4:]


def _like(column, term: str):
    return func.lower(func.coalesce(column, "")).like(f"%{term.lower()}%")


def _full_name_column():
    return func.coalesce(User.first_name, "") + " " + func.coalesce(User.last_name, "")


def _apply_status(query, status_filter: Optional[str]):
    if status_filter == "active":
        return query.filter(User.is_active.is_(True))
    if status_filter == "inactive":
        return query.filter(User.is_active.is_(False))
    return query


def _stats(users: List[User]) -> RegistryStats:
    active = sum(1 for user in users if user.is_active)
    return RegistryStats(total=len(users), active=active, inactive=len(users) - active)


def _user_fields(user: User) -> dict:
    return dict(
        user_id=user.id,
        full_name=f"{user.first_name or ''} {user.last_name or ''}".strip(),
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        username=user.username,
        is_active=bool(user.is_active),
        deactivated_at=user.deactivated_at,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _patient_entry(user: User, patient: Optional[Patient]) -> PatientRegistryEntry:
    entry = PatientRegistryEntry(patient_id=patient.id if patient else None, **_user_fields(user))
    if patient:
        entry.nic = patient.nic
        entry.health_id = patient.health_id
        entry.rfid = patient.rfid
        entry.rfid_masked = mask_rfid(patient.rfid)
        entry.date_of_birth = patient.date_of_birth
        entry.gender = patient.gender
        entry.contact_info = patient.contact_info
        entry.address = patient.address
        entry.blood_type = patient.blood_type
        entry.allergies = patient.allergies
    return entry


def _doctor_entry(user: User, doctor: Optional[Doctor]) -> DoctorRegistryEntry:
    entry = DoctorRegistryEntry(doctor_id=doctor.id if doctor else None, **_user_fields(user))
    if doctor:
        entry.specialization = doctor.specialization
        entry.license_number = doctor.license_number
        entry.qualifications = doctor.qualifications
        entry.experience = doctor.experience
        entry.consultation_fee = doctor.consultation_fee
        entry.available_days = doctor.available_days
        entry.doctor_created_at = doctor.created_at
        entry.doctor_updated_at = doctor.updated_at
    return entry


class RegistryService:
    def __init__(self, db: Session):
        self.db = db

    def patient_registry(
        self, q: Optional[str] = None, status_filter: Optional[str] = None
    ) -> Tuple[RegistryStats, List[PatientRegistryEntry]]:
        query = (
            self.db.query(User, Patient)
            .outerjoin(Patient, Patient.user_id == User.id)
            .filter(User.role == UserRole.PATIENT.value)
        )
        query = _apply_status(query, status_filter)

        term = (q or "").strip()
        if term:
            query = query.filter(or_(
                _like(_full_name_column(), term),
                _like(User.email, term),
                _like(User.username, term),
                _like(Patient.nic, term),
                _like(Patient.health_id, term),
                _like(Patient.contact_info, term),
                _like(Patient.rfid, term),
            ))

        rows = query.order_by(User.created_at.desc(), User.id.desc()).all()
        return _stats([user for user, _ in rows]), [_patient_entry(u, p) for u, p in rows]

    def doctor_registry(
        self,
        q: Optional[str] = None,
        status_filter: Optional[str] = None,
        specialization: Optional[str] = None,
    ) -> Tuple[RegistryStats, List[DoctorRegistryEntry]]:
        query = (
            self.db.query(User, Doctor)
            .outerjoin(Doctor, Doctor.user_id == User.id)
            .filter(User.role == UserRole.DOCTOR.value)
        )
        query = _apply_status(query, status_filter)

        specialization = (specialization or "").strip()
        if specialization and specialization != "all":
            query = query.filter(
                func.lower(func.coalesce(Doctor.specialization, "")) == specialization.lower()
            )

        term = (q or "").strip()
        if term:
            query = query.filter(or_(
                _like(_full_name_column(), term),
                _like(User.email, term),
                _like(User.username, term),
                _like(Doctor.specialization, term),
                _like(Doctor.license_number, term),
                _like(Doctor.qualifications, term),
                _like(Doctor.available_days, term),
            ))

        rows = query.order_by(User.created_at.desc(), User.id.desc()).all()
        return _stats([user for user, _ in rows]), [_doctor_entry(u, d) for u, d in rows]

    def lookup_patient(
        self,
        patient_id: Optional[str] = None,
        nic: Optional[str] = None,
        rfid: Optional[str] = None,
    ) -> PatientRegistryEntry:
        """Find one patient by health id (or record id), NIC or RFID tag."""
        patient_id = (patient_id or "").strip()
        nic = (nic or "").strip()
        rfid = (rfid or "").strip()

        if not (patient_id or nic or rfid):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Provide at least one of: patientId (health_id), nic, rfid"
            )

        query = (
            self.db.query(User, Patient)
            .join(Patient, Patient.user_id == User.id)
            .filter(User.role == UserRole.PATIENT.value)
        )
        if patient_id:
            query = query.filter(or_(Patient.health_id == patient_id, Patient.id == patient_id))
        if nic:
            query = query.filter(Patient.nic == nic)
        if rfid:
            query = query.filter(Patient.rfid == rfid)

        row = query.order_by(User.created_at.desc()).first()
        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found"
            )
        return _patient_entry(*row)

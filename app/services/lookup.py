"""Resolve client-supplied patient/doctor identifiers to profile records.

The mobile client sometimes holds the profile id and sometimes only the id of
the owning user account, so every endpoint that takes a patient or doctor
accepts either.
"""
from typing import Dict, Iterable, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models.patient import Patient
from ..models.doctor import Doctor
from ..models.staff import LabTechnician
from ..models.user import User


def _owner_filter(model, id_or_user_id: str):
    clauses = [model.id == id_or_user_id]
    if id_or_user_id.isdigit():
        clauses.append(model.user_id == int(id_or_user_id))
    return or_(*clauses)


def resolve_patient(db: Session, id_or_user_id: Optional[str]) -> Optional[Patient]:
    if not id_or_user_id:
        return None
    return db.query(Patient).filter(_owner_filter(Patient, str(id_or_user_id))).first()


def resolve_doctor(db: Session, id_or_user_id: Optional[str]) -> Optional[Doctor]:
    if not id_or_user_id:
        return None
    return db.query(Doctor).filter(_owner_filter(Doctor, str(id_or_user_id))).first()


def lab_technician_for_user(db: Session, user_id: int) -> Optional[LabTechnician]:
    return db.query(LabTechnician).filter(LabTechnician.user_id == user_id).first()


def patient_names(db: Session, patient_ids: Iterable[str]) -> Dict[str, Optional[str]]:
    """Map patient profile ids to the owning user's display name."""
    ids = {pid for pid in patient_ids if pid}
    if not ids:
        return {}
    rows = (
        db.query(Patient.id, User.first_name, User.last_name)
        .outerjoin(User, User.id == Patient.user_id)
        .filter(Patient.id.in_(ids))
        .all()
    )
    return {row[0]: _display_name(row[1], row[2]) for row in rows}


def doctor_names(db: Session, doctor_ids: Iterable[str]) -> Dict[str, Optional[str]]:
    """Map doctor profile ids to the owning user's display name."""
    ids = {did for did in doctor_ids if did}
    if not ids:
        return {}
    rows = (
        db.query(Doctor.id, User.first_name, User.last_name)
        .outerjoin(User, User.id == Doctor.user_id)
        .filter(Doctor.id.in_(ids))
        .all()
    )
    return {row[0]: _display_name(row[1], row[2]) for row in rows}


def _display_name(first_name: Optional[str], last_name: Optional[str]) -> Optional[str]:
    name = " ".join(part for part in (first_name, last_name) if part).strip()
    return name or None

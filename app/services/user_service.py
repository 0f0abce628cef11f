from datetime import datetime
from typing import List, Optional
import logging

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.security import get_password_hash, UserRole
from ..models.user import User
from ..models.patient import Patient
from ..models.doctor import Doctor
from ..models.staff import Pharmacist, LabTechnician
from ..schemas.user import UserCreate, UserUpdate, RoleSpecificData
from .auth_service import split_full_name
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

PROFILE_MODELS = {
    UserRole.PATIENT.value: Patient,
    UserRole.DOCTOR.value: Doctor,
    UserRole.PHARMACIST.value: Pharmacist,
    UserRole.LAB_TECHNICIAN.value: LabTechnician,
}


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def _to_int(value) -> Optional[int]:
    try:
        return int(float(value)) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _to_float(value) -> Optional[float]:
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


class UserService:
    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    def create_user(self, user_data: UserCreate) -> User:
        """Create a user of any role, with its role profile when data is given."""
        email = str(user_data.email).strip().lower()
        username = user_data.username.strip().lower()

        self._ensure_unique(email, username)

        first_name, last_name = split_full_name(user_data.full_name)
        new_user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            username=username,
            password_hash=get_password_hash(user_data.password),
            role=user_data.role.value,
            is_active=True,
            deactivated_at=None,
        )
        self.db.add(new_user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with this email or username already exists"
            ) from exc
        self.db.refresh(new_user)

        data = user_data.role_specific_data
        if data and data.model_dump(exclude_none=True):
            self._create_profile(new_user, data)

        self.notifications.notify(
            recipient_role=UserRole.ADMIN.value,
            type="user",
            title="User Added",
            message=f"{new_user.full_name} (@{new_user.username}) was added as {new_user.role}.",
            metadata={
                "event": "user_created",
                "username": new_user.username,
                "role": new_user.role,
                "at": datetime.utcnow().isoformat(),
            },
        )
        self.notifications.notify(
            recipient_user_id=new_user.id,
            title="Account Created",
            message=f"Your {new_user.role} account has been created. You can now sign in.",
            metadata={"event": "account_created", "role": new_user.role, "at": datetime.utcnow().isoformat()},
        )

        logger.info(f"Created {new_user.role} user '{new_user.username}' (id={new_user.id})")
        return new_user

    def list_users(self, role: Optional[str] = None, is_active: Optional[bool] = None) -> List[User]:
        query = self.db.query(User)
        if role:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))
        return query.order_by(User.created_at.desc(), User.id.desc()).all()

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )
        return user

    def update_user(self, user_id: int, update: UserUpdate) -> User:
        user = self.get_user(user_id)

        if update.full_name is not None and update.full_name.strip():
            user.first_name, user.last_name = split_full_name(update.full_name)
        if update.email is not None:
            user.email = str(update.email).strip().lower()
        if update.username is not None and update.username.strip():
            user.username = update.username.strip().lower()
        if update.role is not None:
            user.role = update.role.value
        if update.is_active is not None:
            user.is_active = update.is_active
            user.deactivated_at = None if update.is_active else datetime.utcnow()
        user.updated_at = datetime.utcnow()

        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with this email or username already exists"
            ) from exc
        self.db.refresh(user)

        self.notifications.notify(
            recipient_role=UserRole.ADMIN.value,
            type="user",
            title="User Updated",
            message=f"{user.full_name} (@{user.username}) was updated. Role: {user.role}.",
            metadata={
                "event": "user_updated",
                "username": user.username,
                "role": user.role,
                "at": datetime.utcnow().isoformat(),
            },
        )
        self.notifications.notify(
            recipient_user_id=user.id,
            title="Account Updated",
            message="Your account details were updated by an administrator.",
            metadata={"event": "account_updated", "role": user.role, "at": datetime.utcnow().isoformat()},
        )
        return user

    def delete_user(self, user_id: int) -> None:
        """Delete a user along with its role profile and direct notifications."""
        user = self.get_user(user_id)
        full_name, username, role = user.full_name, user.username, user.role

        profile_model = PROFILE_MODELS.get(role)
        if profile_model is not None:
            self.db.query(profile_model).filter(
                profile_model.user_id == user.id
            ).delete(synchronize_session=False)

        self.notifications.delete_for_recipient(user.id)
        self.db.delete(user)
        self.db.commit()

        logger.info(f"Deleted {role} user '{username}' (id={user_id})")

        self.notifications.notify(
            recipient_role=UserRole.ADMIN.value,
            type="user",
            title="User Deleted",
            message=f"{full_name} (@{username}) was deleted. Role: {role}.",
            metadata={
                "event": "user_deleted",
                "username": username,
                "role": role,
                "at": datetime.utcnow().isoformat(),
            },
        )

    def _ensure_unique(self, email: str, username: str) -> None:
        existing = self.db.query(User.id).filter(
            or_(User.email == email, User.username == username)
        ).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with this email or username already exists"
            )

    def _create_profile(self, user: User, data: RoleSpecificData) -> None:
        """Best-effort: a failure here does not undo the user account."""
        if user.role == UserRole.PATIENT.value:
            profile = Patient(
                user_id=user.id,
                nic=_blank_to_none(data.nic),
                rfid=_blank_to_none(data.rfid),
                date_of_birth=data.date_of_birth,
                gender=_blank_to_none(data.gender),
                contact_info=_blank_to_none(data.contact_info),
                address=_blank_to_none(data.address),
                blood_type=_blank_to_none(data.blood_type),
                allergies=_blank_to_none(data.allergies),
            )
        elif user.role == UserRole.DOCTOR.value:
            profile = Doctor(
                user_id=user.id,
                specialization=_blank_to_none(data.specialization),
                license_number=_blank_to_none(data.license_number),
                qualifications=_blank_to_none(data.qualifications),
                experience=_to_int(data.experience),
                consultation_fee=_to_float(data.consultation_fee),
                available_days=_blank_to_none(data.available_days),
            )
        elif user.role == UserRole.PHARMACIST.value:
            profile = Pharmacist(
                user_id=user.id,
                license_number=_blank_to_none(data.license_number),
            )
        elif user.role == UserRole.LAB_TECHNICIAN.value:
            profile = LabTechnician(
                user_id=user.id,
                specialization=_blank_to_none(data.specialization),
                license_number=_blank_to_none(data.license_number),
            )
        else:
            return

        try:
            self.db.add(profile)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Error inserting {user.role} profile for user {user.id}")

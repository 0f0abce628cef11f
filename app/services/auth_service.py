from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from typing import Tuple
import logging

from ..models.user import User
from ..core.security import (
    verify_password, get_password_hash, create_user_token, UserRole
)
from ..schemas.auth import UserLogin, UserRegister, AuthResponse, UserResponse, ChangePassword

logger = logging.getLogger(__name__)


def split_full_name(full_name: str) -> Tuple[str, str]:
    """Split "First Middle Last" into ("First", "Middle Last")."""
    parts = str(full_name).strip().split(" ")
    first_name = parts[0] if parts else ""
    last_name = " ".join(parts[1:]).strip()
    return first_name, last_name


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def register_user(self, user_data: UserRegister) -> AuthResponse:
        """Register a new patient account and sign it in."""
        email = str(user_data.email).strip().lower()
        username = user_data.username.strip().lower()

        existing_user = self.db.query(User).filter(
            or_(func.lower(User.email) == email, func.lower(User.username) == username)
        ).first()

        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User already exists"
            )

        first_name, last_name = split_full_name(user_data.full_name)
        new_user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            username=username,
            password_hash=get_password_hash(user_data.password),
            role=UserRole.PATIENT.value,
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
                detail="User already exists"
            ) from exc
        self.db.refresh(new_user)

        logger.info(f"Registered patient account '{new_user.username}' (id={new_user.id})")
        return self._session_for(new_user)

    def authenticate_user(self, login_data: UserLogin) -> AuthResponse:
        """Authenticate by username or email and return a session token."""
        identifier = login_data.username.lower()
        user = self.db.query(User).filter(
            or_(func.lower(User.username) == identifier, func.lower(User.email) == identifier)
        ).first()

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials"
            )

        if user.is_active is False:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is not active"
            )

        if not user.password_hash:
            logger.error(f"User {user.id} has no password hash")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Account is misconfigured (missing password hash)"
            )

        if not verify_password(login_data.password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials"
            )

        return self._session_for(user)

    def refresh_session(self, user: User) -> AuthResponse:
        """Issue a fresh token for an already authenticated user."""
        return self._session_for(user)

    def change_password(self, user: User, password_data: ChangePassword) -> None:
        if not user.password_hash or not verify_password(
            password_data.current_password, user.password_hash
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect"
            )

        user.password_hash = get_password_hash(password_data.new_password)
        self.db.commit()

    def _session_for(self, user: User) -> AuthResponse:
        return AuthResponse(
            user=UserResponse.model_validate(user),
            token=create_user_token(user.id, user.username, user.role),
        )

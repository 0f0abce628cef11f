from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_user, rate_limit_check
from ...services.auth_service import AuthService
from ...schemas.auth import UserLogin, UserRegister, UserResponse, ChangePassword
from ...models.user import User

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a new patient account."""
    auth_service = AuthService(db)
    session = auth_service.register_user(user_data)
    return {"success": True, "message": "Registration successful", "data": session}

@router.post("/login")
async def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Authenticate by username or email and return a session token."""
    auth_service = AuthService(db)
    session = auth_service.authenticate_user(login_data)
    return {"success": True, "message": "Login successful", "data": session}

@router.get("/me")
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information."""
    return {"success": True, "data": UserResponse.model_validate(current_user)}

@router.post("/refresh")
async def refresh_session(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Issue a fresh token for the current session."""
    auth_service = AuthService(db)
    session = auth_service.refresh_session(current_user)
    return {"success": True, "message": "Session refreshed", "data": session}

@router.post("/logout")
async def logout():
    """Tokens are stateless; the client discards its copy."""
    return {"success": True, "message": "Logged out", "data": None}

@router.post("/change-password")
async def change_password(
    password_data: ChangePassword,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Change user password."""
    auth_service = AuthService(db)
    auth_service.change_password(current_user, password_data)
    return {"success": True, "message": "Password changed successfully"}

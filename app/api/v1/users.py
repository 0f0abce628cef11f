from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...core.security import UserRole, AuthorizationError
from ...api.deps import get_current_user, get_admin_user
from ...services.user_service import UserService
from ...schemas.auth import UserDetailResponse
from ...schemas.user import UserCreate, UserUpdate
from ...models.user import User

router = APIRouter(prefix="/users", tags=["Users"])

@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    _: User = Depends(get_admin_user)
):
    """Create a user of any role (admin only)."""
    user = UserService(db).create_user(user_data)
    return {
        "success": True,
        "message": "User created successfully",
        "data": UserDetailResponse.model_validate(user),
    }

@router.get("")
async def list_users(
    role: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    db: Session = Depends(get_db),
    _: User = Depends(get_admin_user)
):
    """List users, optionally filtered by role and active flag (admin only)."""
    users = UserService(db).list_users(role=role, is_active=is_active)
    return {
        "success": True,
        "data": [UserDetailResponse.model_validate(user) for user in users],
    }

@router.get("/{user_id}")
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get one user; admins may read anyone, others only themselves."""
    if current_user.role != UserRole.ADMIN.value and current_user.id != user_id:
        raise AuthorizationError("Forbidden")

    user = UserService(db).get_user(user_id)
    return {"success": True, "data": UserDetailResponse.model_validate(user)}

@router.put("/{user_id}")
async def update_user(
    user_id: int,
    update: UserUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(get_admin_user)
):
    """Update a user (admin only)."""
    user = UserService(db).update_user(user_id, update)
    return {
        "success": True,
        "message": "User updated successfully",
        "data": UserDetailResponse.model_validate(user),
    }

@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_admin_user)
):
    """Delete a user and its role profile (admin only)."""
    UserService(db).delete_user(user_id)
    return {"success": True, "message": "User deleted successfully"}

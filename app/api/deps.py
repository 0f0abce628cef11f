from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
import logging

import redis

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, UserRole, TokenPayload
)
from ..models.user import User

logger = logging.getLogger(__name__)

async def get_current_user_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing auth token")

    token_payload = verify_token(credentials.credentials)
    if not token_payload or token_payload.user_id is None:
        raise AuthenticationError("Invalid or expired token")

    # Check if token is access token
    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid or expired token")

    return token_payload

async def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Load the user behind the token; deactivated accounts are refused."""
    user = db.query(User).filter(User.id == token_payload.user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    if user.is_active is False:
        raise AuthorizationError("Account is not active")

    return user

# Role-based access control dependencies
def require_role(*allowed_roles: UserRole):
    """Create a dependency that requires one of the given roles."""
    allowed = {role.value for role in allowed_roles}

    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed:
            raise AuthorizationError("Forbidden")
        return current_user

    return role_checker

get_admin_user = require_role(UserRole.ADMIN)

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Fixed-window rate limiting for authentication endpoints."""
    if not settings.RATE_LIMIT_ENABLED:
        return

    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    try:
        current_requests = redis_client.get(key)
        if current_requests is None:
            redis_client.setex(key, settings.RATE_LIMIT_WINDOW_SECONDS, 1)
            return
        if int(current_requests) >= settings.RATE_LIMIT_REQUESTS:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)
    except redis.RedisError:
        # Redis down: let the request through
        logger.warning("Rate limiter unavailable, Redis did not respond")

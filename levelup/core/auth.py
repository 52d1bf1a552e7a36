"""
Authentication Utility - JWT verification.

Tokens are issued by the platform's auth provider and signed with the
shared JWT secret. This module only verifies them.

Provides:
- JWT token decoding/verification
- FastAPI dependencies for protected routes
"""

from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from levelup.core.config import get_settings
from levelup.schemas.schemas import UserRole

settings = get_settings()

# Bearer token extractor
bearer_scheme = HTTPBearer()


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options
        )
    except JWTError:
        return None


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
    """
    FastAPI dependency resolving the bearer token to {"user_id", "role"}.

    `sub` is the platform user id. The role comes from a `user_role`
    custom claim, falling back to `role`, then to learner.
    """
    payload = decode_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise _unauthorized()

    role = payload.get("user_role") or payload.get("role") or UserRole.learner.value
    return {"user_id": str(payload["sub"]), "role": role}


def resolve_target_user(requested_user_id: Optional[str], user: dict) -> str:
    """
    Learners act on themselves; admins may act on any user.
    Raises 403 when a learner names someone else.
    """
    if not requested_user_id or requested_user_id == user["user_id"]:
        return user["user_id"]

    if user["role"] != UserRole.admin.value:
        raise HTTPException(status_code=403, detail="Admins only")

    return requested_user_id

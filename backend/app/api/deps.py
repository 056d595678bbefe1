"""
Mock Exam Engine - API Dependencies
FastAPI dependencies for authentication and authorization
"""
import uuid
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import verify_token

# Security scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)

STUDENT_ROLE = "student"
REVIEWER_ROLES = ("teacher", "admin")


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as asserted by the platform's auth service."""
    user_id: uuid.UUID
    role: str = STUDENT_ROLE


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Identity:
    """
    Get the current caller from the bearer token.

    Raises:
        HTTPException: If the token is missing, invalid or malformed
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = verify_token(credentials.credentials, token_type="access")
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = uuid.UUID(str(claims["sub"]))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Identity(user_id=user_id, role=claims.get("role") or STUDENT_ROLE)


def require_role(*roles: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/grades")
        async def grade(user: Identity = Depends(require_role("teacher"))):
            ...
    """
    async def role_checker(
        current_user: Annotated[Identity, Depends(get_current_user)],
    ) -> Identity:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {list(roles)}",
            )
        return current_user

    return role_checker


# Type aliases for common dependencies
CurrentUser = Annotated[Identity, Depends(get_current_user)]
Reviewer = Annotated[Identity, Depends(require_role(*REVIEWER_ROLES))]
DbSession = Annotated[AsyncSession, Depends(get_db)]

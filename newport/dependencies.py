from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from enum import Enum
from typing import Optional

from newport.core.security import decode_access_token
from newport.external_services.payme_service import PaymeService
import logging

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

_payme_service: Optional[PaymeService] = None


class UserRole(str, Enum):
    admin = "admin"
    resident = "resident"


class CurrentUser(BaseModel):
    id: str
    role: UserRole = UserRole.resident


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> CurrentUser:
    """Decode the bearer JWT and return the calling user."""

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    try:
        return CurrentUser(id=payload["sub"], role=payload.get("role", UserRole.resident))
    except ValueError:
        logger.warning(f"Token for {payload['sub']} carries unknown role {payload.get('role')}")
        raise credentials_exception

def get_admin_user(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Ensure the user is an admin."""
    if current_user.role != UserRole.admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not permitted for non-admin users"
        )
    return current_user

def get_payme_service() -> PaymeService:
    """Shared merchant service, built on first use so settings load first."""
    global _payme_service
    if _payme_service is None:
        _payme_service = PaymeService()
    return _payme_service

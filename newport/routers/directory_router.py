from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError
from sqlmodel import Session
from typing import Any, Dict
import logging

from newport.core.errors import ErrorCode, ServiceError
from newport.crud.directory_crud import get_profile, upsert_profile
from newport.db.session import get_session
from newport.dependencies import CurrentUser, get_admin_user
from newport.schemas.profile_schema import ProfileData, normalize_profile

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/directory", tags=["directory"])


@router.put("/profiles/{user_id}", response_model=ProfileData, response_model_by_alias=False)
async def sync_profile(
    user_id: str,
    raw_profile: Dict[str, Any] = Body(...),
    current_user: CurrentUser = Depends(get_admin_user),
    session: Session = Depends(get_session)
):
    """Store a resident profile pushed from the directory, in either legacy shape (admin only)"""
    try:
        data = normalize_profile(raw_profile)
    except ValidationError as e:
        logger.warning(f"Rejected profile document for {user_id}: {e.error_count()} errors")
        raise ServiceError(
            ErrorCode.INVALID_ARGUMENT,
            "Profile document matches no known schema",
            {"errors": [".".join(str(part) for part in error["loc"]) for error in e.errors()]}
        )
    profile = upsert_profile(session, user_id, data)
    return ProfileData(full_name=profile.full_name, phone=profile.phone, passport_number=profile.passport_number)


@router.get("/profiles/{user_id}", response_model=ProfileData, response_model_by_alias=False)
async def read_profile(
    user_id: str,
    current_user: CurrentUser = Depends(get_admin_user),
    session: Session = Depends(get_session)
):
    profile = get_profile(session, user_id)
    if not profile:
        raise ServiceError(ErrorCode.NOT_FOUND, "User profile not found")
    return ProfileData(full_name=profile.full_name, phone=profile.phone, passport_number=profile.passport_number)

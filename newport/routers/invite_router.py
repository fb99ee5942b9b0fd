from fastapi import APIRouter, Depends, Request
from sqlmodel import Session
import logging

from newport.core.config import settings
from newport.core.rate_limit import rate_limit
from newport.crud.invite_crud import InviteCRUD, build_invite_url
from newport.db.session import get_session
from newport.dependencies import CurrentUser, get_current_user
from newport.schemas.invite_schema import (
    InviteAccept,
    InviteAcceptResponse,
    InviteCreate,
    InviteCreateResponse,
    InviteRevokeResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/invites", tags=["invites"])


@router.post("", response_model=InviteCreateResponse)
async def create_invite(
    invite_data: InviteCreate,
    current_user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Issue a signed family invite link for the caller's apartments."""
    invite = InviteCRUD(session).create_invite(current_user.id, invite_data.apartment_ids)
    return InviteCreateResponse(
        success=True,
        invite_id=invite.id,
        invite_url=build_invite_url(invite),
        expires_at=invite.expires_at,
    )


@router.post("/{invite_id}/accept", response_model=InviteAcceptResponse)
@rate_limit(times=settings.RATE_LIMIT_PER_MINUTE)
async def accept_invite(
    request: Request,
    invite_id: str,
    accept_data: InviteAccept,
    current_user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    apartments = InviteCRUD(session).accept_invite(invite_id, current_user.id, accept_data.signature)
    return InviteAcceptResponse(success=True, apartment_ids=[apartment.id for apartment in apartments])


@router.post("/{invite_id}/revoke", response_model=InviteRevokeResponse)
async def revoke_invite(
    invite_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    invite = InviteCRUD(session).revoke_invite(invite_id, current_user.id)
    return InviteRevokeResponse(success=True, status=invite.status.value)

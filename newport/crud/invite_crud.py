from sqlmodel import Session, select
from sqlalchemy import update
from newport.core.config import settings
from newport.core.errors import ErrorCode, ServiceError
from newport.core.security import sign_invite, verify_invite_signature
from newport.crud.directory_crud import add_family_member, get_apartment, lock_apartment
from newport.models.apartment_model import Apartment
from newport.models.invite_model import Invite, InviteStatus
from datetime import datetime
from typing import List, Optional
import logging
import secrets
import time

logger = logging.getLogger(__name__)


def current_time_ms() -> int:
    return int(time.time() * 1000)


def build_invite_url(invite: Invite) -> str:
    return f"{settings.INVITE_BASE_URL}/{invite.id}?sig={invite.signature}"


class InviteCRUD:
    def __init__(self, session: Session):
        self.session = session

    def get_invite(self, invite_id: str) -> Invite:
        invite = self.session.get(Invite, invite_id)
        if not invite:
            raise ServiceError(ErrorCode.NOT_FOUND, "Invitation not found")
        return invite

    def create_invite(self, user_id: str, apartment_ids: List[str]) -> Invite:
        """Issue a signed, expiring invite for apartments the caller owns."""
        for apartment_id in apartment_ids:
            apartment = get_apartment(self.session, apartment_id)
            if not apartment:
                raise ServiceError(ErrorCode.NOT_FOUND, f"Apartment {apartment_id} not found")
            if apartment.owner_id != user_id:
                raise ServiceError(ErrorCode.PERMISSION_DENIED, "Only the apartment owner can invite family members")

        invite_id = secrets.token_urlsafe(12)
        expires_at = current_time_ms() + settings.INVITE_TTL_SECONDS * 1000
        invite = Invite(
            id=invite_id,
            created_by=user_id,
            expires_at=expires_at,
            signature=sign_invite(invite_id, expires_at),
        )
        invite.apartment_ids = list(dict.fromkeys(apartment_ids))
        self.session.add(invite)
        self.session.commit()
        self.session.refresh(invite)
        logger.info(f"Invite {invite.id} issued by {user_id} for apartments {invite.apartment_ids}")
        return invite

    def accept_invite(self, invite_id: str, user_id: str, signature: str) -> List[Apartment]:
        """Consume a pending invite and add the caller to its apartments.

        The invite is claimed with a conditional update, so only one caller can
        consume it. The claim and the membership updates are committed together.
        """
        invite = self.get_invite(invite_id)

        if invite.status != InviteStatus.pending:
            raise ServiceError(ErrorCode.FAILED_PRECONDITION, f"Invitation is {invite.status.value}")

        if current_time_ms() > invite.expires_at:
            self.session.exec(
                update(Invite)
                .where(Invite.id == invite_id)
                .where(Invite.status == InviteStatus.pending)
                .values(status=InviteStatus.expired)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
            logger.info(f"Invite {invite_id} expired before use")
            raise ServiceError(ErrorCode.FAILED_PRECONDITION, "Invitation has expired")

        if not verify_invite_signature(invite.id, invite.expires_at, signature):
            logger.warning(f"Invalid signature presented for invite {invite_id}")
            raise ServiceError(ErrorCode.PERMISSION_DENIED, "Invalid invitation signature")

        apartments = []
        try:
            # Claim the invite only while it is still pending; a concurrent accept loses here
            claimed = self.session.exec(
                update(Invite)
                .where(Invite.id == invite_id)
                .where(Invite.status == InviteStatus.pending)
                .values(status=InviteStatus.consumed, consumed_by=user_id, consumed_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                logger.warning(f"Invite {invite_id} was consumed concurrently, rejecting {user_id}")
                raise ServiceError(ErrorCode.FAILED_PRECONDITION, "Invitation has already been used")

            for apartment_id in invite.apartment_ids:
                apartment = lock_apartment(self.session, apartment_id)
                if not apartment:
                    logger.warning(f"Invite {invite_id} references missing apartment {apartment_id}")
                    continue
                add_family_member(self.session, apartment, user_id)
                apartments.append(apartment)

            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Invite {invite_id} consumed by {user_id}")
        return apartments

    def revoke_invite(self, invite_id: str, user_id: str) -> Invite:
        invite = self.get_invite(invite_id)
        if invite.created_by != user_id:
            raise ServiceError(ErrorCode.PERMISSION_DENIED, "Only the creator can revoke this invitation")
        if invite.status != InviteStatus.pending:
            raise ServiceError(ErrorCode.FAILED_PRECONDITION, f"Invitation is {invite.status.value}")

        invite.status = InviteStatus.revoked
        invite.revoked_at = datetime.utcnow()
        self.session.add(invite)
        self.session.commit()
        self.session.refresh(invite)
        logger.info(f"Invite {invite_id} revoked by {user_id}")
        return invite


def expire_stale_invites(session: Session, now_ms: Optional[int] = None) -> int:
    """Mark pending invites past their expiry as expired. Returns the count."""
    now_ms = now_ms if now_ms is not None else current_time_ms()
    stale = session.exec(
        select(Invite)
        .where(Invite.status == InviteStatus.pending)
        .where(Invite.expires_at < now_ms)
    ).all()
    for invite in stale:
        invite.status = InviteStatus.expired
        session.add(invite)
    if stale:
        session.commit()
        logger.info(f"Expired {len(stale)} stale invites")
    return len(stale)

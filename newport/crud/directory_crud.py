from sqlmodel import Session, select
from newport.models.apartment_model import Apartment, UserProfile
from newport.schemas.profile_schema import ProfileData
from datetime import datetime
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def get_apartment(session: Session, apartment_id: str) -> Optional[Apartment]:
    return session.get(Apartment, apartment_id)


def lock_apartment(session: Session, apartment_id: str) -> Optional[Apartment]:
    """Re-read the apartment row FOR UPDATE, discarding any stale copy in the session."""
    return session.exec(
        select(Apartment)
        .where(Apartment.id == apartment_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()


def get_profile(session: Session, user_id: str) -> Optional[UserProfile]:
    return session.get(UserProfile, user_id)


def user_has_apartment_access(apartment: Apartment, user_id: str) -> bool:
    """Owners and registered family members may pay for an apartment."""
    return apartment.owner_id == user_id or user_id in apartment.family_member_ids


def add_family_member(session: Session, apartment: Apartment, user_id: str) -> bool:
    """Add ``user_id`` to the apartment's family members. Does not commit."""
    if user_has_apartment_access(apartment, user_id):
        return False
    apartment.family_member_ids = apartment.family_member_ids + [user_id]
    apartment.updated_at = datetime.utcnow()
    session.add(apartment)
    return True


def upsert_profile(session: Session, user_id: str, data: ProfileData) -> UserProfile:
    profile = session.get(UserProfile, user_id)
    if profile is None:
        profile = UserProfile(id=user_id, full_name=data.full_name)
    profile.full_name = data.full_name
    profile.phone = data.phone
    profile.passport_number = data.passport_number
    profile.updated_at = datetime.utcnow()
    session.add(profile)
    session.commit()
    session.refresh(profile)
    logger.info(f"Synced directory profile for user: {user_id}")
    return profile

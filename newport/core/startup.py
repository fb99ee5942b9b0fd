from sqlmodel import Session
from newport.crud.invite_crud import expire_stale_invites
from newport.db.session import engine
from newport.dependencies import get_payme_service
import logging
from sqlalchemy.exc import SQLAlchemyError
import traceback

logger = logging.getLogger(__name__)

async def ensure_payme_configured():
    """Fail startup early when the Payme merchant credentials are missing."""
    service = get_payme_service()
    logger.info(f"Payme merchant {service.merchant_id} ready, checkout at {service.checkout_url}")

async def expire_invites_on_startup():
    """Expire pending invites whose lifetime ran out while the API was down."""
    session = Session(engine)
    try:
        logger.info("Checking for stale invites...")
        expired = expire_stale_invites(session)
        logger.info(f"Stale invite check completed, {expired} expired")
    except SQLAlchemyError as e:
        logger.error(f"Database error: {str(e)}")
        logger.error(traceback.format_exc())
        raise
    finally:
        session.close()

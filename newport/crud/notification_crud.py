from sqlmodel import Session
from newport.models.notification_model import Notification, NotificationType
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def format_amount(amount: int) -> str:
    """Group thousands with spaces, e.g. 850000 -> '850 000'."""
    return f"{amount:,}".replace(",", " ")


def add_notification(
    session: Session,
    user_id: str,
    title: str,
    message: str,
    type: NotificationType,
    related_payment_id: Optional[str] = None
) -> Notification:
    """Queue an in-app notification for the push pipeline. Does not commit."""
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        related_payment_id=related_payment_id,
    )
    session.add(notification)
    logger.info(f"Queued {type.value} notification for user: {user_id}")
    return notification

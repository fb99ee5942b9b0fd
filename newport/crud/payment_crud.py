from sqlmodel import Session, select
from sqlalchemy.exc import IntegrityError
from newport.core.config import settings
from newport.core.errors import ErrorCode, ServiceError
from newport.crud.directory_crud import get_apartment, get_profile, user_has_apartment_access
from newport.crud.notification_crud import add_notification, format_amount
from newport.external_services.payme_service import PaymeService
from newport.models.notification_model import NotificationType
from newport.models.payment_model import ACTIVE_PAYMENT_STATUSES, Payment
from datetime import date, datetime
from typing import List, Optional, Tuple
import hashlib
import logging
import secrets
import time

logger = logging.getLogger(__name__)

DEFAULT_PURPOSE = "utility"


def generate_idempotency_key(user_id: str, amount: int, purpose: str, day: Optional[date] = None) -> str:
    """Deterministic key for (payer, amount, purpose, calendar day).

    Duplicate detection is bounded to one day: the same request made
    tomorrow produces a different key.
    """
    day = day or date.today()
    data = f"{user_id}:{amount}:{purpose}:{day.isoformat()}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def generate_payment_id() -> str:
    return f"PAY_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def find_active_payment(session: Session, idempotency_key: str) -> Optional[Payment]:
    """Return the live payment (pending, processing or completed) for a key, if any."""
    return session.exec(
        select(Payment)
        .where(Payment.idempotency_key == idempotency_key)
        .where(Payment.status.in_(ACTIVE_PAYMENT_STATUSES))
        .limit(1)
    ).first()


def validate_payment_amount(amount: int) -> None:
    if amount < settings.PAYMENT_MIN_AMOUNT:
        raise ServiceError(
            ErrorCode.INVALID_ARGUMENT,
            f"Minimum payment amount is {settings.PAYMENT_MIN_AMOUNT} sum",
            {"field": "amount"}
        )
    if amount > settings.PAYMENT_MAX_AMOUNT:
        raise ServiceError(
            ErrorCode.INVALID_ARGUMENT,
            f"Maximum payment amount is {settings.PAYMENT_MAX_AMOUNT} sum",
            {"field": "amount"}
        )


def create_payment(
    session: Session,
    payme_service: PaymeService,
    user_id: str,
    amount: int,
    apartment_id: Optional[str],
    description: Optional[str] = None
) -> Tuple[Payment, bool]:
    """Create a pending payment for an apartment bill.

    Returns ``(payment, created)``. When a live payment with the same
    idempotency key exists it is returned with ``created=False`` and nothing
    is written.
    """
    validate_payment_amount(amount)
    if not apartment_id:
        raise ServiceError(ErrorCode.INVALID_ARGUMENT, "apartmentId is required", {"field": "apartmentId"})

    apartment = get_apartment(session, apartment_id)
    if not apartment:
        raise ServiceError(ErrorCode.NOT_FOUND, "Apartment not found")
    if not user_has_apartment_access(apartment, user_id):
        raise ServiceError(ErrorCode.PERMISSION_DENIED, "No access to this apartment")

    profile = get_profile(session, user_id)
    if not profile:
        raise ServiceError(ErrorCode.NOT_FOUND, "User profile not found")

    idempotency_key = generate_idempotency_key(user_id, amount, description or DEFAULT_PURPOSE)
    existing = find_active_payment(session, idempotency_key)
    if existing:
        logger.warning(f"Duplicate payment attempt: {idempotency_key} -> {existing.id}")
        return existing, False

    payment_id = generate_payment_id()
    payment = Payment(
        id=payment_id,
        user_id=user_id,
        apartment_id=apartment_id,
        apartment_number=apartment.apartment_number,
        block_id=apartment.block_id,
        amount=amount,
        description=description or f"Utility payment for apartment {apartment.apartment_number}",
        idempotency_key=idempotency_key,
        user_name=profile.full_name,
        user_phone=profile.phone,
        merchant_id=payme_service.merchant_id,
        checkout_url=payme_service.build_checkout_url(payment_id, apartment_id, amount),
    )
    session.add(payment)
    add_notification(
        session,
        user_id=user_id,
        title="Payment created",
        message=f"Payment of {format_amount(amount)} sum created",
        type=NotificationType.payment,
        related_payment_id=payment_id,
    )

    try:
        session.commit()
    except IntegrityError:
        # A concurrent request with the same key won the insert
        session.rollback()
        existing = find_active_payment(session, idempotency_key)
        if existing is None:
            raise
        logger.warning(f"Duplicate payment resolved on insert: {idempotency_key} -> {existing.id}")
        return existing, False

    session.refresh(payment)
    logger.info(f"Payment created: {payment.id} for user {user_id}, amount: {amount}")
    return payment, True


def get_user_payments(
    session: Session,
    user_id: str,
    apartment_id: Optional[str] = None,
    limit: int = 20
) -> List[Payment]:
    """Get the user's payments, newest first"""
    query = select(Payment).where(Payment.user_id == user_id)
    if apartment_id:
        query = query.where(Payment.apartment_id == apartment_id)
    return list(session.exec(
        query.order_by(Payment.created_at.desc()).limit(limit)
    ).all())


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlmodel import Session
from typing import Optional
import logging

from newport.core.config import settings
from newport.core.errors import ErrorCode, ServiceError
from newport.core.rate_limit import rate_limit
from newport.db.session import get_session
from newport.dependencies import CurrentUser, get_current_user, get_payme_service
from newport.external_services.payme_service import PaymeService
from newport.schemas.payment_schema import (
    PaymentCreate,
    PaymentCreateResponse,
    PaymentHistoryResponse,
    PaymentSummary,
)
from newport.crud.payment_crud import create_payment, get_user_payments, isoformat_or_none

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("", response_model=PaymentCreateResponse)
@rate_limit(times=settings.RATE_LIMIT_PER_MINUTE)
async def create_apartment_payment(
    request: Request,
    payment_data: PaymentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session),
    payme_service: PaymeService = Depends(get_payme_service)
):
    """Create a Payme payment for an apartment bill"""
    try:
        payment, created = create_payment(
            session=session,
            payme_service=payme_service,
            user_id=current_user.id,
            amount=payment_data.amount,
            apartment_id=payment_data.apartment_id,
            description=payment_data.description
        )
        return PaymentCreateResponse(
            success=True,
            payment_id=payment.id,
            checkout_url=payment.checkout_url,
            message="Payment created" if created else "Payment already created"
        )
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        logger.exception(f"Unexpected error creating payment for user {current_user.id}: {str(e)}")
        raise ServiceError(ErrorCode.INTERNAL, "Failed to create payment")


@router.get("/history", response_model=PaymentHistoryResponse)
async def get_payment_history(
    apartment_id: Optional[str] = Query(None, alias="apartmentId"),
    limit: int = Query(20, ge=1, le=settings.PAYMENT_HISTORY_MAX_LIMIT),
    current_user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """List the caller's payments, newest first"""
    try:
        payments = get_user_payments(session, current_user.id, apartment_id, limit)
        return PaymentHistoryResponse(
            success=True,
            payments=[
                PaymentSummary(
                    payment_id=payment.id,
                    amount=payment.amount,
                    description=payment.description,
                    status=payment.status.value,
                    created_at=isoformat_or_none(payment.created_at),
                    completed_at=isoformat_or_none(payment.completed_at),
                    apartment_number=payment.apartment_number,
                    block_id=payment.block_id,
                )
                for payment in payments
            ]
        )
    except Exception as e:
        logger.exception(f"Error getting payment history for user {current_user.id}: {str(e)}")
        raise ServiceError(ErrorCode.INTERNAL, "Failed to load payment history")

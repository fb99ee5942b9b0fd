"""Payme merchant API: the transaction lifecycle driven by gateway callbacks.

Payme calls the merchant webhook with one JSON-RPC method per step::

    CheckPerformTransaction -> CreateTransaction -> PerformTransaction
    CreateTransaction or PerformTransaction -> CancelTransaction

A transaction moves ``created -> completed``, ``created -> cancelled`` or
``completed -> cancelled`` and never back. Payme re-sends a method when it
times out waiting for us, so every handler must give the same answer for a
replayed call. Each mutating handler re-reads the transaction row with
``FOR UPDATE`` and commits the transaction and payment changes together.
"""
from sqlmodel import Session, select
from sqlalchemy.exc import IntegrityError
from newport.core.errors import PaymeErrorCode, PaymeRPCError
from newport.crud.notification_crud import add_notification, format_amount
from newport.models.notification_model import NotificationType
from newport.models.payment_model import Payment, PaymentStatus
from newport.models.transaction_model import PaymeTransaction, TransactionState
from newport.schemas.payme_schema import (
    CancelTransactionParams,
    CheckPerformTransactionParams,
    CreateTransactionParams,
    GetStatementParams,
    TransactionIdParams,
)
from datetime import datetime
from typing import Any, Dict, Optional
import logging
import time

logger = logging.getLogger(__name__)

TIYIN_PER_SUM = 100
FINISHED_PAYMENT_STATUSES = (PaymentStatus.completed, PaymentStatus.cancelled)


def current_time_ms() -> int:
    return int(time.time() * 1000)


class PaymeMerchantCRUD:
    def __init__(self, session: Session):
        self.session = session

    def _get_payment(self, payment_id: str, for_update: bool = False) -> Optional[Payment]:
        query = select(Payment).where(Payment.id == payment_id)
        if for_update:
            query = query.with_for_update()
        return self.session.exec(query).first()

    def _find_transaction(self, transaction_id: str, for_update: bool = False) -> Optional[PaymeTransaction]:
        query = select(PaymeTransaction).where(PaymeTransaction.id == transaction_id)
        if for_update:
            query = query.with_for_update()
        return self.session.exec(query).first()

    def _get_transaction(self, transaction_id: str, for_update: bool = False) -> PaymeTransaction:
        transaction = self._find_transaction(transaction_id, for_update)
        if not transaction:
            raise PaymeRPCError(PaymeErrorCode.TRANSACTION_NOT_FOUND, data="id")
        return transaction

    @staticmethod
    def _created_result(transaction: PaymeTransaction) -> Dict[str, Any]:
        return {
            "create_time": transaction.create_time,
            "transaction": transaction.id,
            "state": int(TransactionState.created),
        }

    def check_perform_transaction(self, params: CheckPerformTransactionParams) -> Dict[str, Any]:
        payment = self._get_payment(params.account.payment_id)
        if not payment:
            raise PaymeRPCError(PaymeErrorCode.PAYMENT_NOT_FOUND, data="payment_id")

        if payment.status in FINISHED_PAYMENT_STATUSES:
            raise PaymeRPCError(PaymeErrorCode.ALREADY_PROCESSED, data="payment_id")

        return {
            "allow": True,
            "detail": {
                "items": [
                    {"title": "Apartment", "value": f"{payment.block_id}-{payment.apartment_number}"},
                    {"title": "Payer", "value": payment.user_name},
                ],
            },
        }

    def create_transaction(self, params: CreateTransactionParams) -> Dict[str, Any]:
        existing = self._find_transaction(params.id, for_update=True)
        if existing:
            # Replay of a CreateTransaction we already accepted
            if existing.state != TransactionState.created:
                raise PaymeRPCError(PaymeErrorCode.INVALID_STATE, data="id")
            return self._created_result(existing)

        payment = self._get_payment(params.account.payment_id, for_update=True)
        if not payment:
            raise PaymeRPCError(PaymeErrorCode.PAYMENT_NOT_FOUND, data="payment_id")

        if params.amount != payment.amount * TIYIN_PER_SUM:
            raise PaymeRPCError(PaymeErrorCode.INVALID_AMOUNT, data="amount")

        if payment.status in FINISHED_PAYMENT_STATUSES:
            raise PaymeRPCError(PaymeErrorCode.ALREADY_PROCESSED, data="payment_id")

        if payment.status == PaymentStatus.processing and payment.payme_transaction_id not in (None, params.id):
            raise PaymeRPCError(PaymeErrorCode.PAYMENT_BUSY, data="payment_id")

        transaction = PaymeTransaction(
            id=params.id,
            payment_id=payment.id,
            amount=params.amount,
            state=TransactionState.created,
            create_time=params.time,
        )
        payment.status = PaymentStatus.processing
        payment.payme_transaction_id = params.id
        payment.updated_at = datetime.utcnow()
        self.session.add(transaction)
        self.session.add(payment)

        try:
            self.session.commit()
        except IntegrityError:
            # Concurrent delivery of the same CreateTransaction inserted first
            self.session.rollback()
            existing = self._get_transaction(params.id)
            if existing.state != TransactionState.created:
                raise PaymeRPCError(PaymeErrorCode.INVALID_STATE, data="id")
            return self._created_result(existing)

        logger.info(f"Payme transaction {params.id} created for payment {payment.id}")
        return {
            "create_time": params.time,
            "transaction": params.id,
            "state": int(TransactionState.created),
        }

    def perform_transaction(self, params: TransactionIdParams) -> Dict[str, Any]:
        transaction = self._get_transaction(params.id, for_update=True)
        if transaction.state != TransactionState.created:
            raise PaymeRPCError(PaymeErrorCode.INVALID_STATE, data="id")

        perform_time = current_time_ms()
        transaction.state = TransactionState.completed
        transaction.perform_time = perform_time
        self.session.add(transaction)

        payment = self._get_payment(transaction.payment_id, for_update=True)
        if payment:
            payment.status = PaymentStatus.completed
            payment.completed_at = datetime.utcnow()
            payment.updated_at = payment.completed_at
            self.session.add(payment)
            add_notification(
                self.session,
                user_id=payment.user_id,
                title="Payment completed",
                message=f"Payment of {format_amount(transaction.amount // TIYIN_PER_SUM)} sum completed successfully",
                type=NotificationType.payment_success,
                related_payment_id=payment.id,
            )
        else:
            logger.error(f"Payment {transaction.payment_id} missing for Payme transaction {transaction.id}")

        self.session.commit()
        logger.info(f"Payme transaction {transaction.id} performed")
        return {
            "transaction": transaction.id,
            "perform_time": perform_time,
            "state": int(TransactionState.completed),
        }

    def cancel_transaction(self, params: CancelTransactionParams) -> Dict[str, Any]:
        transaction = self._get_transaction(params.id, for_update=True)
        if transaction.state == TransactionState.cancelled:
            return {
                "transaction": transaction.id,
                "cancel_time": transaction.cancel_time,
                "state": int(TransactionState.cancelled),
            }

        cancel_time = current_time_ms()
        transaction.state = TransactionState.cancelled
        transaction.cancel_time = cancel_time
        transaction.reason = params.reason
        self.session.add(transaction)

        payment = self._get_payment(transaction.payment_id, for_update=True)
        if payment:
            payment.status = PaymentStatus.cancelled
            payment.cancelled_at = datetime.utcnow()
            payment.cancel_reason = params.reason
            payment.updated_at = payment.cancelled_at
            self.session.add(payment)

        self.session.commit()
        logger.info(f"Payme transaction {transaction.id} cancelled, reason: {params.reason}")
        return {
            "transaction": transaction.id,
            "cancel_time": cancel_time,
            "state": int(TransactionState.cancelled),
        }

    def check_transaction(self, params: TransactionIdParams) -> Dict[str, Any]:
        transaction = self._get_transaction(params.id)
        return {
            "create_time": transaction.create_time,
            "perform_time": transaction.perform_time or 0,
            "cancel_time": transaction.cancel_time or 0,
            "transaction": transaction.id,
            "state": transaction.state,
            "reason": transaction.reason,
        }

    def get_statement(self, params: GetStatementParams) -> Dict[str, Any]:
        rows = self.session.exec(
            select(PaymeTransaction, Payment)
            .join(Payment, Payment.id == PaymeTransaction.payment_id)
            .where(PaymeTransaction.create_time >= params.from_time)
            .where(PaymeTransaction.create_time <= params.to_time)
            .order_by(PaymeTransaction.create_time.desc())
        ).all()

        transactions = []
        for transaction, payment in rows:
            transactions.append({
                "id": transaction.id,
                "time": transaction.create_time,
                "amount": transaction.amount,
                "account": {
                    "payment_id": payment.id,
                    "apartment_id": payment.apartment_id,
                },
                "create_time": transaction.create_time,
                "perform_time": transaction.perform_time or 0,
                "cancel_time": transaction.cancel_time or 0,
                "transaction": transaction.id,
                "state": transaction.state,
                "reason": transaction.reason,
            })
        return {"transactions": transactions}

from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column, Index, text
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class PaymentStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    cancelled = "cancelled"


ACTIVE_PAYMENT_STATUSES = (PaymentStatus.pending, PaymentStatus.processing, PaymentStatus.completed)


class Payment(SQLModel, table=True):
    # At most one non-cancelled payment per idempotency key
    __table_args__ = (
        Index(
            "uq_payment_active_idempotency_key",
            "idempotency_key",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    apartment_id: str = Field(index=True)
    apartment_number: Optional[str] = None
    block_id: Optional[str] = None
    amount: int = Field(gt=0)
    description: str
    status: PaymentStatus = Field(default=PaymentStatus.pending)
    idempotency_key: str

    checkout_url: Optional[str] = None
    merchant_id: Optional[str] = None
    user_name: Optional[str] = None
    user_phone: Optional[str] = None

    # Payme-specific fields
    payme_transaction_id: Optional[str] = Field(default=None, index=True)
    cancel_reason: Optional[Union[int, str]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    cancelled_at: Optional[datetime] = Field(default=None)

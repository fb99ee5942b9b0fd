from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, BigInteger, Column
from enum import IntEnum
from typing import Optional, Union


class TransactionState(IntEnum):
    created = 1
    completed = 2
    cancelled = -1


class PaymeTransaction(SQLModel, table=True):
    """Local mirror of a Payme transaction.

    ``id`` is the transaction id issued by Payme. Times are epoch
    milliseconds as sent by the gateway; ``amount`` is in tiyin.
    """

    id: str = Field(primary_key=True)
    payment_id: str = Field(foreign_key="payment.id", index=True)
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    state: int = Field(default=TransactionState.created)
    create_time: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    perform_time: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    cancel_time: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    reason: Optional[Union[int, str]] = Field(default=None, sa_column=Column(JSON, nullable=True))

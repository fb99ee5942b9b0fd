from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional, Union


class PaymeWebhookRequest(BaseModel):
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)
    id: Optional[Union[int, str]] = None


class PaymeAccount(BaseModel):
    model_config = ConfigDict(extra="allow")

    payment_id: str
    apartment_id: Optional[str] = None


class CheckPerformTransactionParams(BaseModel):
    account: PaymeAccount
    amount: Optional[int] = None


class CreateTransactionParams(BaseModel):
    id: str
    time: int
    amount: int
    account: PaymeAccount


class TransactionIdParams(BaseModel):
    id: str


class CancelTransactionParams(BaseModel):
    id: str
    reason: Optional[Union[int, str]] = None


class GetStatementParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_time: int = Field(alias="from")
    to_time: int = Field(alias="to")

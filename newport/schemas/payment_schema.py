from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class PaymentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: int
    description: Optional[str] = None
    apartment_id: Optional[str] = Field(default=None, alias="apartmentId")


class PaymentCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    payment_id: str = Field(alias="paymentId")
    checkout_url: str = Field(alias="checkoutUrl")
    message: str


class PaymentSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_id: str = Field(alias="paymentId")
    amount: int
    description: str
    status: str
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    completed_at: Optional[str] = Field(default=None, alias="completedAt")
    apartment_number: Optional[str] = Field(default=None, alias="apartmentNumber")
    block_id: Optional[str] = Field(default=None, alias="blockId")


class PaymentHistoryResponse(BaseModel):
    success: bool
    payments: List[PaymentSummary]

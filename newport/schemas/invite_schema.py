from pydantic import BaseModel, ConfigDict, Field
from typing import List


class InviteCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    apartment_ids: List[str] = Field(alias="apartmentIds", min_length=1)


class InviteCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    invite_id: str = Field(alias="inviteId")
    invite_url: str = Field(alias="inviteUrl")
    expires_at: int = Field(alias="expiresAt")


class InviteAccept(BaseModel):
    signature: str


class InviteAcceptResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    apartment_ids: List[str] = Field(alias="apartmentIds")


class InviteRevokeResponse(BaseModel):
    success: bool
    status: str

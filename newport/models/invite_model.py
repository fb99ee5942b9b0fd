from sqlmodel import SQLModel, Field
from sqlalchemy import BigInteger, Column
from typing import Optional, List
from datetime import datetime
from enum import Enum
import json


class InviteStatus(str, Enum):
    pending = "pending"
    consumed = "consumed"
    revoked = "revoked"
    expired = "expired"


class Invite(SQLModel, table=True):
    id: str = Field(primary_key=True)
    created_by: str = Field(index=True)
    apartment_ids_json: str = Field(default="[]")
    status: InviteStatus = Field(default=InviteStatus.pending, index=True)
    # epoch milliseconds, part of the signed message
    expires_at: int = Field(sa_column=Column(BigInteger, nullable=False))
    signature: str
    consumed_by: Optional[str] = None
    consumed_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def apartment_ids(self) -> List[str]:
        """Return the list of apartment ids granted by this invite."""
        return json.loads(self.apartment_ids_json or "[]")

    @apartment_ids.setter
    def apartment_ids(self, values: List[str]):
        self.apartment_ids_json = json.dumps(values)

from sqlmodel import SQLModel, Field
from typing import Optional, List
from datetime import datetime
import json


class Apartment(SQLModel, table=True):
    id: str = Field(primary_key=True)
    apartment_number: str
    block_id: str
    owner_id: str = Field(index=True)
    family_member_ids_json: str = Field(default="[]", nullable=True)
    updated_at: Optional[datetime] = None

    @property
    def family_member_ids(self) -> List[str]:
        """Return the list of family member user ids."""
        return json.loads(self.family_member_ids_json or "[]")

    @family_member_ids.setter
    def family_member_ids(self, values: List[str]):
        """Set the family member user ids from a list."""
        self.family_member_ids_json = json.dumps(values)


class UserProfile(SQLModel, table=True):
    id: str = Field(primary_key=True)
    full_name: str
    phone: Optional[str] = None
    passport_number: Optional[str] = None
    updated_at: Optional[datetime] = None

"""Payer profile documents as they arrive from the resident directory.

Older mobile clients wrote profiles in snake_case (``full_name``,
``passport_number``); newer ones use camelCase (``fullName``,
``passportNumber``). Both variants are modelled explicitly and collapsed
into ``ProfileData`` at the boundary so nothing downstream has to guess
which key a document used.
"""
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing import Annotated, Any, Dict, Literal, Optional, Union

SNAKE_CASE_KEYS = ("full_name", "passport_number", "phone_number")


class ProfileData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    full_name: str = Field(alias="fullName", min_length=1)
    phone: Optional[str] = None
    passport_number: Optional[str] = Field(default=None, alias="passportNumber")


class CamelCaseProfile(BaseModel):
    variant: Literal["camel"] = "camel"
    fullName: str = Field(min_length=1)
    phone: Optional[str] = None
    passportNumber: Optional[str] = None

    def normalized(self) -> ProfileData:
        return ProfileData(full_name=self.fullName, phone=self.phone, passport_number=self.passportNumber)


class SnakeCaseProfile(BaseModel):
    variant: Literal["snake"] = "snake"
    full_name: str = Field(min_length=1)
    phone: Optional[str] = None
    phone_number: Optional[str] = None
    passport_number: Optional[str] = None

    def normalized(self) -> ProfileData:
        return ProfileData(
            full_name=self.full_name,
            phone=self.phone or self.phone_number,
            passport_number=self.passport_number,
        )


RawProfile = Annotated[Union[CamelCaseProfile, SnakeCaseProfile], Field(discriminator="variant")]
raw_profile_adapter = TypeAdapter(RawProfile)


def detect_profile_variant(raw: Dict[str, Any]) -> str:
    if any(key in raw for key in SNAKE_CASE_KEYS):
        return "snake"
    return "camel"


def normalize_profile(raw: Dict[str, Any]) -> ProfileData:
    """Validate a raw profile document and return it in the canonical shape.

    Raises ``pydantic.ValidationError`` when the document matches neither variant.
    """
    tagged = {**raw, "variant": detect_profile_variant(raw)}
    return raw_profile_adapter.validate_python(tagged).normalized()

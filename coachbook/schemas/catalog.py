from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coachbook.schemas.common import Money, NaturalInt, NonBlankStr


class SkillCreate(BaseModel):
    name: NonBlankStr = Field(max_length=50)


class SkillPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class CreditPackageCreate(BaseModel):
    name: NonBlankStr = Field(max_length=50)
    credit_amount: NaturalInt
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


class CreditPackagePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    credit_amount: int
    price: Money

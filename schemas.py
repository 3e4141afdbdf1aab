from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _normalize_email(value: object) -> object:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class SignupIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=72)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: object) -> object:
        return _normalize_email(value)


class LoginIn(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: object) -> object:
        return _normalize_email(value)


class IncomeIn(BaseModel):
    amount: Decimal = Field(..., ge=Decimal("0.01"), max_digits=12, decimal_places=2)
    source: str = Field(..., min_length=1, max_length=100)
    date: date
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("source")
    @classmethod
    def source_not_blank(cls, value: str) -> str:
        clean = value.strip()
        if not clean:
            raise ValueError("Source is required")
        return clean


class ExpenseIn(BaseModel):
    amount: Decimal = Field(..., ge=Decimal("0.01"), max_digits=12, decimal_places=2)
    category: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)
    date: date

    @field_validator("category")
    @classmethod
    def category_not_blank(cls, value: str) -> str:
        clean = value.strip()
        if not clean:
            raise ValueError("Category is required")
        return clean

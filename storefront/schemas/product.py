from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

import bleach

from storefront.schemas.category import CategorySummary
from storefront.schemas.common import Money, PriceInput


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    return bleach.clean(value, tags=[], attributes={}, strip=True).strip()


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: PriceInput
    stock: int = Field(default=0, ge=0)
    category_id: Optional[int] = Field(default=None, gt=0)
    image_url: Optional[str] = Field(default=None, max_length=500)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return _clean_text(value)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[PriceInput] = None
    stock: Optional[int] = Field(default=None, ge=0)
    category_id: Optional[int] = Field(default=None, gt=0)
    image_url: Optional[str] = Field(default=None, max_length=500)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return _clean_text(value)


class ProductResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    price: Money
    stock: int
    image_url: Optional[str]
    category_id: Optional[int]
    category: Optional[CategorySummary]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True
        frozen = True


class ProductSummary(BaseModel):
    """Minimal product fields embedded in cart and order views."""

    id: int
    name: str
    image_url: Optional[str]

    class Config:
        from_attributes = True
        frozen = True

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

import bleach


def _clean_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    sanitized = bleach.clean(value, tags=[], attributes={}, strip=True).strip()
    if len(sanitized) > 1000:
        raise ValueError("Description must not exceed 1000 characters")
    return sanitized


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return _clean_description(value)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    description: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return _clean_description(value)


class CategorySummary(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True
        frozen = True


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
        frozen = True


class CategoryDetailResponse(CategoryResponse):
    product_count: int = 0

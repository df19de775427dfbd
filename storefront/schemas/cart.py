from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from storefront.schemas.common import Money
from storefront.schemas.product import ProductSummary


class CartItemCreate(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(default=1, ge=1)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1)


class CartProduct(ProductSummary):
    price: Money
    stock: int


class CartItemResponse(BaseModel):
    id: int
    product_id: int
    quantity: int
    price_at_added: Money
    product: Optional[CartProduct]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
        frozen = True


class CartResponse(BaseModel):
    items: List[CartItemResponse]
    total: Money
    item_count: int

    class Config:
        frozen = True

from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from storefront.models.order import OrderStatus
from storefront.schemas.common import Money
from storefront.schemas.product import ProductSummary


class OrderItemResponse(BaseModel):
    id: int
    product_id: Optional[int]
    quantity: int
    price_at_order: Money
    product: Optional[ProductSummary]

    class Config:
        from_attributes = True
        frozen = True


class OrderOwner(BaseModel):
    id: int
    email: str

    class Config:
        from_attributes = True
        frozen = True


class OrderResponse(BaseModel):
    id: int
    user_id: int
    total_amount: Money
    status: OrderStatus
    items: List[OrderItemResponse]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True
        frozen = True


class AdminOrderResponse(OrderResponse):
    user: Optional[OrderOwner]


class OrderStatusUpdate(BaseModel):
    status: OrderStatus

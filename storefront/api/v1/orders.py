from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from storefront.api.deps import PageParams, get_current_user, require_admin
from storefront.core.rate_limiter import limiter
from storefront.db.session import get_db
from storefront.models.order import OrderStatus
from storefront.models.user import User
from storefront.schemas.order import OrderStatusUpdate
from storefront.services import order_service
from storefront.utils.response import paginated_response, success

router = APIRouter()


@router.post(
    "",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Create new order",
    description="""
Creates an order from the authenticated user's cart.

Process:
1. Validates cart is not empty
2. Locks the referenced products to prevent overselling
3. Checks every product still exists and has enough stock
4. Totals the cart using the prices captured when items were added
5. Creates the order and order items
6. Deducts stock and clears the cart

All steps run in a single transaction.
""",
    responses={
        201: {"description": "Order created successfully"},
        400: {"description": "Cart empty, product removed, or insufficient stock"},
        401: {"description": "Authentication required"},
    },
)
@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED, include_in_schema=False)
@limiter.limit("10/minute")
def create_order(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create order from cart"""
    order = order_service.create_order(db, current_user.id)
    return success(data={"order": order}, message="Order placed successfully")


@router.get("/my-orders", response_model=dict)
@limiter.limit("30/minute")
def get_my_orders(
    request: Request,
    pagination: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get user's order history, newest first"""
    orders, total = order_service.list_user_orders(
        db, current_user.id, pagination.page, pagination.limit
    )
    return paginated_response(
        "orders",
        orders,
        total=total,
        page=pagination.page,
        limit=pagination.limit,
        message="Orders retrieved",
    )


@router.get("", response_model=dict)
@router.get("/", response_model=dict, include_in_schema=False)
def get_all_orders(
    pagination: PageParams = Depends(),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List orders across all users (admin only)."""
    orders, total = order_service.list_all_orders(
        db, pagination.page, pagination.limit, status=status_filter
    )
    return paginated_response(
        "orders",
        orders,
        total=total,
        page=pagination.page,
        limit=pagination.limit,
        message="Orders retrieved",
    )


@router.get("/{order_id}", response_model=dict)
@limiter.limit("30/minute")
def get_order_detail(
    request: Request,
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get order details; other users' orders are reported as not found"""
    order = order_service.get_order(
        db, order_id, current_user.id, is_admin=current_user.is_admin
    )
    return success(data={"order": order}, message="Order retrieved")


@router.put("/{order_id}/cancel", response_model=dict)
@limiter.limit("10/minute")
def cancel_order(
    request: Request,
    order_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Cancel an order that has not shipped yet"""
    order = order_service.cancel_order(db, order_id, current_user.id)
    return success(data={"order": order}, message="Order cancelled successfully")


@router.put("/{order_id}/status", response_model=dict)
@limiter.limit("20/minute")
def update_order_status(
    request: Request,
    order_id: int,
    status_update: OrderStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Update order status (admin only)."""
    order = order_service.update_order_status(db, order_id, status_update.status)
    return success(data={"order": order}, message="Order status updated successfully")

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user
from storefront.db.session import get_db
from storefront.models.user import User
from storefront.schemas.cart import CartItemCreate, CartItemUpdate
from storefront.services.cart_service import CartService
from storefront.utils.response import success

router = APIRouter()


@router.get("", response_model=dict)
@router.get("/", response_model=dict)
def get_cart(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get user's cart"""
    cart = CartService.get_cart(db, current_user.id)
    return success(data=cart, message="Cart retrieved")


@router.post(
    "",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"description": "Quantity merged into an existing cart item"},
        201: {"description": "Item added to cart"},
        400: {"description": "Insufficient stock"},
        404: {"description": "Product not found"},
    },
)
@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED, include_in_schema=False)
def add_to_cart(
    cart_item: CartItemCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add item to cart, merging quantities for a product already in it"""
    item, created = CartService.add_item(
        db, current_user.id, cart_item.product_id, cart_item.quantity
    )
    if created:
        return success(data={"cart_item": item}, message="Item added to cart successfully")

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=success(data={"cart_item": item}, message="Cart updated successfully"),
    )


@router.put("/{item_id}", response_model=dict)
def update_cart_item(
    item_id: int,
    update_data: CartItemUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update cart item quantity"""
    item = CartService.update_item(db, current_user.id, item_id, update_data.quantity)
    return success(data={"cart_item": item}, message="Cart item updated successfully")


@router.delete("/{item_id}", response_model=dict)
def remove_from_cart(
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Remove item from cart"""
    CartService.remove_item(db, current_user.id, item_id)
    return success(message="Item removed from cart successfully")


@router.delete("", response_model=dict)
@router.delete("/", response_model=dict, include_in_schema=False)
def clear_cart(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Clear entire cart"""
    CartService.clear(db, current_user.id)
    return success(message="Cart cleared successfully")

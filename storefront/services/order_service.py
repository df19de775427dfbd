from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session, selectinload

from storefront.core.exceptions import (
    EmptyCart,
    InsufficientStock,
    InvalidStatusTransition,
    OrderNotFound,
    ProductGone,
)
from storefront.models.cart import CartItem
from storefront.models.order import (
    CUSTOMER_CANCELLABLE_STATUSES,
    Order,
    OrderItem,
    OrderStatus,
    can_transition,
)
from storefront.models.product import Product
from storefront.schemas.order import AdminOrderResponse, OrderResponse

logger = structlog.get_logger()

CENTS = Decimal("0.01")


def _order_query(db: Session, with_owner: bool = False):
    options = [selectinload(Order.items).selectinload(OrderItem.product)]
    if with_owner:
        options.append(selectinload(Order.user))
    return db.query(Order).options(*options)


def _load_order_view(db: Session, order_id: int) -> OrderResponse:
    order = _order_query(db).filter(Order.id == order_id).first()
    if not order:
        raise OrderNotFound()
    return OrderResponse.model_validate(order)


def _lock_products(db: Session, product_ids: Iterable[int]) -> Dict[int, Product]:
    """Lock product rows in ascending id order so concurrent checkouts cannot deadlock."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    products = (
        db.query(Product)
        .filter(Product.id.in_(ids))
        .order_by(Product.id)
        .with_for_update()
        .populate_existing()
        .all()
    )
    return {product.id: product for product in products}


def _lock_cart(db: Session, user_id: int) -> List[CartItem]:
    return (
        db.query(CartItem)
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.id)
        .with_for_update()
        .populate_existing()
        .all()
    )


def create_order(db: Session, user_id: int) -> OrderResponse:
    """
    Convert the user's cart into a pending order.

    Stock checks, order and item inserts, stock decrements and clearing the
    cart all happen in one transaction; any failure rolls every write back.

    Raises:
        EmptyCart: the user has no cart items.
        ProductGone: a cart item references a deleted product.
        InsufficientStock: a cart item asks for more than the product's stock.
    """
    try:
        cart_items = _lock_cart(db, user_id)
        if not cart_items:
            raise EmptyCart()

        locked_products = _lock_products(db, (item.product_id for item in cart_items))

        # A concurrent checkout may have consumed the cart while this one waited.
        cart_items = _lock_cart(db, user_id)
        if not cart_items:
            raise EmptyCart()

        unlocked_ids = {item.product_id for item in cart_items} - locked_products.keys()
        if unlocked_ids:
            locked_products.update(_lock_products(db, unlocked_ids))

        total_amount = Decimal("0")
        for cart_item in cart_items:
            product = locked_products.get(cart_item.product_id)
            if product is None:
                raise ProductGone(cart_item.product_id)
            if cart_item.quantity > product.stock:
                raise InsufficientStock(product.stock, product_name=product.name)

            # Line totals use the price captured at add-to-cart time.
            total_amount += Decimal(cart_item.price_at_added) * cart_item.quantity

        order = Order(
            user_id=user_id,
            total_amount=total_amount.quantize(CENTS, rounding=ROUND_HALF_UP),
            status=OrderStatus.PENDING,
        )
        db.add(order)
        db.flush()

        for cart_item in cart_items:
            db.add(
                OrderItem(
                    order_id=order.id,
                    product_id=cart_item.product_id,
                    quantity=cart_item.quantity,
                    price_at_order=cart_item.price_at_added,
                )
            )
            locked_products[cart_item.product_id].stock -= cart_item.quantity

        db.query(CartItem).filter(
            CartItem.id.in_([item.id for item in cart_items])
        ).delete(synchronize_session=False)
        db.commit()
    except (EmptyCart, ProductGone, InsufficientStock) as exc:
        db.rollback()
        logger.info("order_rejected", user_id=user_id, reason=exc.message)
        raise
    except Exception:
        db.rollback()
        raise

    order_id = order.id
    db.expire_all()
    view = _load_order_view(db, order_id)

    logger.info(
        "order_created",
        order_id=view.id,
        user_id=user_id,
        total_amount=str(view.total_amount),
        item_count=len(view.items),
    )
    return view


def list_user_orders(db: Session, user_id: int, page: int, limit: int) -> Tuple[List[OrderResponse], int]:
    query = _order_query(db).filter(Order.user_id == user_id)
    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [OrderResponse.model_validate(order) for order in orders], total


def get_order(db: Session, order_id: int, user_id: int, is_admin: bool) -> OrderResponse:
    """Owners see their own orders, admins see any; everyone else gets 404."""
    query = _order_query(db).filter(Order.id == order_id)
    if not is_admin:
        query = query.filter(Order.user_id == user_id)

    order = query.first()
    if not order:
        raise OrderNotFound()
    return OrderResponse.model_validate(order)


def list_all_orders(
    db: Session,
    page: int,
    limit: int,
    status: Optional[OrderStatus] = None,
) -> Tuple[List[AdminOrderResponse], int]:
    query = _order_query(db, with_owner=True)
    if status is not None:
        query = query.filter(Order.status == status)

    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [AdminOrderResponse.model_validate(order) for order in orders], total


def _restock(db: Session, order: Order) -> None:
    quantities: Dict[int, int] = {}
    for item in order.items:
        if item.product_id is not None:
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

    locked_products = _lock_products(db, quantities.keys())
    for product_id, quantity in quantities.items():
        product = locked_products.get(product_id)
        # Deleted products have nothing to restock.
        if product is not None:
            product.stock += quantity


def _change_status(db: Session, order: Order, new_status: OrderStatus) -> OrderStatus:
    old_status = order.status
    if not can_transition(old_status, new_status):
        raise InvalidStatusTransition(old_status.value, new_status.value)

    order.status = new_status
    if new_status == OrderStatus.CANCELLED:
        _restock(db, order)
    return old_status


def update_order_status(db: Session, order_id: int, new_status: OrderStatus) -> OrderResponse:
    """Move an order along the status transition table (admin only)."""
    try:
        order = (
            _order_query(db)
            .filter(Order.id == order_id)
            .with_for_update(of=Order)
            .first()
        )
        if not order:
            raise OrderNotFound()

        old_status = _change_status(db, order, new_status)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "order_status_updated",
        order_id=order_id,
        old_status=old_status.value,
        new_status=new_status.value,
    )
    db.expire_all()
    return _load_order_view(db, order_id)


def cancel_order(db: Session, order_id: int, user_id: int) -> OrderResponse:
    """Cancel one of the caller's own orders while it has not shipped yet."""
    try:
        order = (
            _order_query(db)
            .filter(Order.id == order_id, Order.user_id == user_id)
            .with_for_update(of=Order)
            .first()
        )
        if not order:
            raise OrderNotFound()

        if order.status not in CUSTOMER_CANCELLABLE_STATUSES:
            raise InvalidStatusTransition(order.status.value, OrderStatus.CANCELLED.value)

        old_status = _change_status(db, order, OrderStatus.CANCELLED)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("order_cancelled", order_id=order_id, user_id=user_id, previous_status=old_status.value)
    db.expire_all()
    return _load_order_view(db, order_id)

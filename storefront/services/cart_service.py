from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from storefront.core.exceptions import CartItemNotFound, InsufficientStock, ProductNotFound
from storefront.models.cart import CartItem
from storefront.models.product import Product
from storefront.schemas.cart import CartItemResponse, CartResponse

logger = structlog.get_logger()

CENTS = Decimal("0.01")


class CartService:
    """Per-user cart rows. Every mutation re-reads the product's current stock."""

    @staticmethod
    def _load_item(db: Session, user_id: int, item_id: int) -> CartItem:
        cart_item = (
            db.query(CartItem)
            .options(selectinload(CartItem.product))
            .filter(CartItem.id == item_id, CartItem.user_id == user_id)
            .first()
        )
        if not cart_item:
            raise CartItemNotFound()
        return cart_item

    @staticmethod
    def get_cart(db: Session, user_id: int) -> CartResponse:
        cart_items = (
            db.query(CartItem)
            .options(selectinload(CartItem.product))
            .filter(CartItem.user_id == user_id)
            .order_by(CartItem.created_at.desc(), CartItem.id.desc())
            .all()
        )

        total = sum(
            (Decimal(item.price_at_added) * item.quantity for item in cart_items),
            Decimal("0"),
        )

        return CartResponse(
            items=[CartItemResponse.model_validate(item) for item in cart_items],
            total=total.quantize(CENTS, rounding=ROUND_HALF_UP),
            item_count=len(cart_items),
        )

    @staticmethod
    def _find_item(db: Session, user_id: int, product_id: int) -> Optional[CartItem]:
        return (
            db.query(CartItem)
            .filter(CartItem.user_id == user_id, CartItem.product_id == product_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    @staticmethod
    def _lock_product(db: Session, product_id: int) -> Product:
        product = (
            db.query(Product)
            .filter(Product.id == product_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not product:
            raise ProductNotFound()
        return product

    @staticmethod
    def _merge(db: Session, product: Product, existing_item: CartItem, quantity: int) -> CartItem:
        new_quantity = existing_item.quantity + quantity
        if product.stock < new_quantity:
            raise InsufficientStock(product.stock)

        existing_item.quantity = new_quantity
        existing_item.price_at_added = product.price
        db.commit()
        return existing_item

    @staticmethod
    def add_item(db: Session, user_id: int, product_id: int, quantity: int = 1) -> Tuple[CartItemResponse, bool]:
        """Add a product to the cart, merging into an existing row.

        The product row is locked first so concurrent adds for the same
        product queue up behind each other. Returns the cart item and whether
        a new row was created.
        """
        try:
            product = CartService._lock_product(db, product_id)
            if product.stock < quantity:
                raise InsufficientStock(product.stock)

            existing_item = CartService._find_item(db, user_id, product_id)
            if existing_item:
                merged = CartService._merge(db, product, existing_item, quantity)
                logger.info("cart_item_merged", user_id=user_id, product_id=product_id, quantity=merged.quantity)
                return CartService._item_view(db, user_id, merged.id), False

            cart_item = CartItem(
                user_id=user_id,
                product_id=product_id,
                quantity=quantity,
                price_at_added=product.price,
            )
            db.add(cart_item)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                # Another request inserted the same row first; merge into it.
                product = CartService._lock_product(db, product_id)
                existing_item = CartService._find_item(db, user_id, product_id)
                if existing_item is None:
                    raise
                merged = CartService._merge(db, product, existing_item, quantity)
                logger.info("cart_item_merged", user_id=user_id, product_id=product_id, quantity=merged.quantity)
                return CartService._item_view(db, user_id, merged.id), False
        except Exception:
            db.rollback()
            raise

        logger.info("cart_item_added", user_id=user_id, product_id=product_id, quantity=quantity)
        return CartService._item_view(db, user_id, cart_item.id), True

    @staticmethod
    def update_item(db: Session, user_id: int, item_id: int, quantity: int) -> CartItemResponse:
        cart_item = CartService._load_item(db, user_id, item_id)

        product = db.query(Product).filter(Product.id == cart_item.product_id).first()
        if not product:
            raise ProductNotFound()
        if product.stock < quantity:
            raise InsufficientStock(product.stock)

        cart_item.quantity = quantity
        db.commit()
        return CartService._item_view(db, user_id, item_id)

    @staticmethod
    def remove_item(db: Session, user_id: int, item_id: int) -> None:
        cart_item = CartService._load_item(db, user_id, item_id)
        db.delete(cart_item)
        db.commit()

    @staticmethod
    def clear(db: Session, user_id: int) -> int:
        removed = db.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
        db.commit()
        return removed

    @staticmethod
    def _item_view(db: Session, user_id: int, item_id: int) -> CartItemResponse:
        return CartItemResponse.model_validate(CartService._load_item(db, user_id, item_id))

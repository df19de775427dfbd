from fastapi import status
from typing import Any, List, Optional


class APIError(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


# Authentication

class Unauthorized(APIError):
    def __init__(self, message: str = "Not authenticated"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message)


class InvalidCredentials(Unauthorized):
    def __init__(self):
        super().__init__("Incorrect email or password")


class Forbidden(APIError):
    def __init__(self, message: str = "Access denied"):
        super().__init__(status.HTTP_403_FORBIDDEN, message)


class EmailAlreadyExists(APIError):
    def __init__(self):
        super().__init__(status.HTTP_409_CONFLICT, "Email already registered")


# Catalog

class CategoryNotFound(APIError):
    def __init__(self):
        super().__init__(status.HTTP_404_NOT_FOUND, "Category not found")


class CategoryAlreadyExists(APIError):
    def __init__(self, name: str):
        super().__init__(status.HTTP_409_CONFLICT, f"Category '{name}' already exists")


class ProductNotFound(APIError):
    def __init__(self):
        super().__init__(status.HTTP_404_NOT_FOUND, "Product not found")


# Cart

class CartItemNotFound(APIError):
    def __init__(self):
        super().__init__(status.HTTP_404_NOT_FOUND, "Cart item not found")


class InsufficientStock(APIError):
    def __init__(self, available: int, product_name: Optional[str] = None):
        if product_name:
            message = f"Insufficient stock for {product_name}. Only {available} items available"
        else:
            message = f"Insufficient stock. Only {available} items available"
        super().__init__(status.HTTP_400_BAD_REQUEST, message)
        self.available = available


# Orders

class EmptyCart(APIError):
    def __init__(self):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "Cart is empty. Add items to cart before placing an order",
        )


class ProductGone(APIError):
    def __init__(self, product_id: int):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            f"Product with ID {product_id} no longer exists",
        )
        self.product_id = product_id


class OrderNotFound(APIError):
    def __init__(self):
        super().__init__(status.HTTP_404_NOT_FOUND, "Order not found")


class InvalidStatusTransition(APIError):
    def __init__(self, current: str, requested: str):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            f"Cannot change order status from {current} to {requested}",
        )

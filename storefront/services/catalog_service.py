from decimal import Decimal
from typing import List, Optional, Tuple

import structlog
from slugify import slugify
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from storefront.core.exceptions import CategoryAlreadyExists, CategoryNotFound, ProductNotFound
from storefront.models.category import Category
from storefront.models.product import Product
from storefront.schemas.category import (
    CategoryCreate,
    CategoryDetailResponse,
    CategoryResponse,
    CategoryUpdate,
)
from storefront.schemas.product import ProductCreate, ProductResponse, ProductUpdate

logger = structlog.get_logger()


# --------------------------------------------------
# CATEGORIES
# --------------------------------------------------

def _get_category_or_404(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise CategoryNotFound()
    return category


def _ensure_unique_category_name(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Category.id).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first() is not None:
        raise CategoryAlreadyExists(name)


def _unique_slug(db: Session, name: str, exclude_id: Optional[int] = None) -> str:
    base = slugify(name) or "category"
    slug = base
    suffix = 2
    while True:
        query = db.query(Category.id).filter(Category.slug == slug)
        if exclude_id is not None:
            query = query.filter(Category.id != exclude_id)
        if query.first() is None:
            return slug
        slug = f"{base}-{suffix}"
        suffix += 1


def list_categories(db: Session) -> List[CategoryResponse]:
    categories = db.query(Category).order_by(Category.name.asc()).all()
    return [CategoryResponse.model_validate(category) for category in categories]


def get_category(db: Session, category_id: int) -> CategoryDetailResponse:
    category = _get_category_or_404(db, category_id)
    product_count = db.query(func.count(Product.id)).filter(Product.category_id == category.id).scalar()
    return CategoryDetailResponse(
        **CategoryResponse.model_validate(category).model_dump(),
        product_count=product_count or 0,
    )


def create_category(db: Session, data: CategoryCreate) -> CategoryResponse:
    _ensure_unique_category_name(db, data.name)

    category = Category(
        name=data.name,
        slug=_unique_slug(db, data.name),
        description=data.description,
    )
    db.add(category)
    db.commit()
    db.refresh(category)

    logger.info("category_created", category_id=category.id, name=category.name)
    return CategoryResponse.model_validate(category)


def update_category(db: Session, category_id: int, data: CategoryUpdate) -> CategoryResponse:
    category = _get_category_or_404(db, category_id)

    if data.name is not None and data.name != category.name:
        _ensure_unique_category_name(db, data.name, exclude_id=category.id)
        category.name = data.name
        category.slug = _unique_slug(db, data.name, exclude_id=category.id)
    if data.description is not None:
        category.description = data.description

    db.commit()
    db.refresh(category)
    return CategoryResponse.model_validate(category)


def delete_category(db: Session, category_id: int) -> None:
    category = _get_category_or_404(db, category_id)
    db.delete(category)
    db.commit()
    logger.info("category_deleted", category_id=category_id)


# --------------------------------------------------
# PRODUCTS
# --------------------------------------------------

def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = (
        db.query(Product)
        .options(selectinload(Product.category))
        .filter(Product.id == product_id)
        .first()
    )
    if not product:
        raise ProductNotFound()
    return product


def list_products(
    db: Session,
    page: int,
    limit: int,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    category_id: Optional[int] = None,
    search: Optional[str] = None,
) -> Tuple[List[ProductResponse], int]:
    """Return one page of products, newest first, and the total match count."""
    query = db.query(Product).options(selectinload(Product.category))

    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if search:
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))

    total = query.count()
    products = (
        query.order_by(Product.created_at.desc(), Product.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [ProductResponse.model_validate(product) for product in products], total


def get_product(db: Session, product_id: int) -> ProductResponse:
    return ProductResponse.model_validate(_get_product_or_404(db, product_id))


def create_product(db: Session, data: ProductCreate) -> ProductResponse:
    if data.category_id is not None:
        _get_category_or_404(db, data.category_id)

    product = Product(
        name=data.name,
        description=data.description,
        price=data.price,
        stock=data.stock,
        category_id=data.category_id,
        image_url=data.image_url,
    )
    db.add(product)
    db.commit()

    logger.info("product_created", product_id=product.id, stock=product.stock)
    return get_product(db, product.id)


def update_product(db: Session, product_id: int, data: ProductUpdate) -> ProductResponse:
    product = _get_product_or_404(db, product_id)

    changes = data.model_dump(exclude_unset=True)
    if changes.get("category_id") is not None:
        _get_category_or_404(db, changes["category_id"])

    for field in ("name", "price", "stock"):
        # Required columns: an explicit null leaves the current value.
        if field in changes and changes[field] is None:
            changes.pop(field)

    for field, value in changes.items():
        setattr(product, field, value)

    db.commit()
    db.expire(product)

    logger.info("product_updated", product_id=product_id, fields=sorted(changes))
    return get_product(db, product_id)


def delete_product(db: Session, product_id: int) -> None:
    product = _get_product_or_404(db, product_id)
    db.delete(product)
    db.commit()
    logger.info("product_deleted", product_id=product_id)

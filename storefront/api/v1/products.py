from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from storefront.api.deps import PageParams, require_admin
from storefront.core.rate_limiter import limiter
from storefront.db.session import get_db
from storefront.models.user import User
from storefront.schemas.product import ProductCreate, ProductUpdate
from storefront.services import catalog_service
from storefront.utils.response import paginated_response, success

router = APIRouter()


@router.get("", response_model=dict)
@router.get("/", response_model=dict)
@limiter.limit("100/minute")
def get_products(
    request: Request,
    pagination: PageParams = Depends(),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    category_id: Optional[int] = Query(None, gt=0),
    search: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_db),
):
    """
    Get products with filtering and pagination
    """
    products, total = catalog_service.list_products(
        db,
        page=pagination.page,
        limit=pagination.limit,
        min_price=min_price,
        max_price=max_price,
        category_id=category_id,
        search=search,
    )
    return paginated_response(
        "products",
        products,
        total=total,
        page=pagination.page,
        limit=pagination.limit,
        message="Products retrieved",
    )


@router.get("/{product_id}", response_model=dict)
@limiter.limit("100/minute")
def get_product(request: Request, product_id: int, db: Session = Depends(get_db)):
    product = catalog_service.get_product(db, product_id)
    return success(data={"product": product}, message="Product retrieved")


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_product(
    product_in: ProductCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = catalog_service.create_product(db, product_in)
    return success(data={"product": product}, message="Product created successfully")


@router.put("/{product_id}", response_model=dict)
def update_product(
    product_id: int,
    product_in: ProductUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = catalog_service.update_product(db, product_id, product_in)
    return success(data={"product": product}, message="Product updated successfully")


@router.delete("/{product_id}", response_model=dict)
def delete_product(
    product_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    catalog_service.delete_product(db, product_id)
    return success(message="Product deleted successfully")

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from storefront.api.deps import require_admin
from storefront.core.rate_limiter import limiter
from storefront.db.session import get_db
from storefront.models.user import User
from storefront.schemas.category import CategoryCreate, CategoryUpdate
from storefront.services import catalog_service
from storefront.utils.response import success

router = APIRouter()


@router.get("", response_model=dict)
@router.get("/", response_model=dict)
@limiter.limit("100/minute")
def get_categories(request: Request, db: Session = Depends(get_db)):
    """Public: all categories ordered by name"""
    categories = catalog_service.list_categories(db)
    return success(data={"categories": categories}, message="Categories retrieved")


@router.get("/{category_id}", response_model=dict)
@limiter.limit("100/minute")
def get_category(request: Request, category_id: int, db: Session = Depends(get_db)):
    category = catalog_service.get_category(db, category_id)
    return success(data={"category": category}, message="Category retrieved")


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_category(
    category_in: CategoryCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category = catalog_service.create_category(db, category_in)
    return success(data={"category": category}, message="Category created successfully")


@router.put("/{category_id}", response_model=dict)
def update_category(
    category_id: int,
    category_in: CategoryUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category = catalog_service.update_category(db, category_id, category_in)
    return success(data={"category": category}, message="Category updated successfully")


@router.delete("/{category_id}", response_model=dict)
def delete_category(
    category_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    catalog_service.delete_category(db, category_id)
    return success(message="Category deleted successfully")

# backend/routes/categories.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from database import get_db
from models.category import Category
from models.product import Product
from models.users import User
from schemas.category import CategoryCreate, CategoryOut
from schemas.common import Envelope, StatusFilter
from utils.audit import snapshot, write_audit
from utils.errors import ApiError, not_found
from utils.tokenJWT import get_current_user, role_required

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["Categories"])

can_edit = role_required("admin", "user")
admin_only = role_required("admin")


# Categories joined with the number of active products in each
def _with_product_count(db: Session):
    product_count = func.count(Product.id).label("product_count")
    return (
        db.query(Category, product_count)
        .outerjoin(Product, and_(Product.category_id == Category.id, Product.is_active.is_(True)))
        .group_by(Category.id)
    )


def _to_out(category: Category, product_count: int = 0) -> CategoryOut:
    out = CategoryOut.model_validate(category)
    out.product_count = int(product_count or 0)
    return out


def _get_category_or_404(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise not_found("CATEGORY_NOT_FOUND", "Category not found")
    return category


def _check_name_free(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Category.id).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ApiError(status.HTTP_409_CONFLICT, "CATEGORY_EXISTS", "Category already exists")


@router.get("", response_model=Envelope[List[CategoryOut]])
def list_categories(
    status_filter: StatusFilter = Query("active", alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = _with_product_count(db)
    if status_filter != "all":
        query = query.filter(Category.status == status_filter)
    rows = query.order_by(Category.name.asc()).all()
    return Envelope(data=[_to_out(category, count) for category, count in rows])


@router.get("/{category_id}", response_model=Envelope[CategoryOut])
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    row = _with_product_count(db).filter(Category.id == category_id).first()
    if not row:
        raise not_found("CATEGORY_NOT_FOUND", "Category not found")
    category, count = row
    return Envelope(data=_to_out(category, count))


@router.post("", response_model=Envelope[CategoryOut], status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_edit),
):
    _check_name_free(db, payload.name)

    category = Category(name=payload.name, description=payload.description)
    db.add(category)
    db.flush()
    write_audit(db, table_name="categories", record_id=category.id, action="CREATE",
                user_id=current_user.id, new_values=snapshot(category))
    db.commit()
    db.refresh(category)

    logger.info("Category created: %s by user %s", category.name, current_user.id)
    return Envelope(data=_to_out(category), message="Category created successfully")


@router.put("/{category_id}", response_model=Envelope[CategoryOut])
def update_category(
    category_id: int,
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_edit),
):
    category = _get_category_or_404(db, category_id)
    _check_name_free(db, payload.name, exclude_id=category.id)

    old = snapshot(category)
    category.name = payload.name
    category.description = payload.description
    db.flush()
    write_audit(db, table_name="categories", record_id=category.id, action="UPDATE",
                user_id=current_user.id, old_values=old, new_values=snapshot(category))
    db.commit()

    category, count = _with_product_count(db).filter(Category.id == category_id).one()
    logger.info("Category updated: %s (ID: %s) by user %s", category.name, category.id, current_user.id)
    return Envelope(data=_to_out(category, count), message="Category updated successfully")


# Soft delete: products keep pointing at the inactive category
@router.delete("/{category_id}", response_model=Envelope[CategoryOut])
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    category = _get_category_or_404(db, category_id)

    old = snapshot(category)
    category.status = "inactive"
    db.flush()
    write_audit(db, table_name="categories", record_id=category.id, action="DELETE",
                user_id=current_user.id, old_values=old, new_values=snapshot(category))
    db.commit()
    db.refresh(category)

    logger.info("Category deactivated: %s (ID: %s) by user %s", category.name, category.id, current_user.id)
    return Envelope(data=_to_out(category), message="Category deactivated successfully")

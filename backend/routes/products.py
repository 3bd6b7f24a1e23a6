# backend/routes/products.py
import logging
from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, joinedload

from config import settings
from database import get_db
from models.category import Category
from models.product import Product
from models.stock import StockMovement
from models.supplier import Supplier
from models.users import User
from routes.stock import lock_product
from schemas.common import Envelope, Page, Pagination
import schemas.product as product_schemas
from utils.audit import snapshot, write_audit
from utils.errors import ApiError, not_found
from utils.search import LIKE_ESCAPE, contains_pattern
from utils.stock_ledger import MOVEMENT_IN, MOVEMENT_OUT
from utils.tokenJWT import get_current_user, role_required

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])

can_edit = role_required("admin", "user")
admin_only = role_required("admin")

SORT_COLUMNS = {
    "created_at": Product.created_at,
    "name": Product.name,
    "sku": Product.sku,
    "price": Product.price,
    "quantity": Product.quantity,
}


# ---- HELPERS ----
def _norm_sku(sku: str) -> str:
    return sku.strip()


def _active_products(db: Session):
    return (
        db.query(Product)
        .options(joinedload(Product.category), joinedload(Product.supplier))
        .filter(Product.is_active.is_(True))
    )


def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = _active_products(db).filter(Product.id == product_id).first()
    if not product:
        raise not_found("PRODUCT_NOT_FOUND", "Product not found")
    return product


def _check_references(db: Session, payload: product_schemas.ProductCreate) -> None:
    if not db.query(Category.id).filter(Category.id == payload.category_id).first():
        raise ApiError(status.HTTP_400_BAD_REQUEST, "CATEGORY_NOT_FOUND", "Category not found")
    if not db.query(Supplier.id).filter(Supplier.id == payload.supplier_id).first():
        raise ApiError(status.HTTP_400_BAD_REQUEST, "SUPPLIER_NOT_FOUND", "Supplier not found")


def _check_sku_free(db: Session, sku: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ApiError(status.HTTP_409_CONFLICT, "SKU_EXISTS", "SKU already exists")


# Keep the movement ledger in step with quantities set directly on the product
def _record_quantity_change(db: Session, product: Product, before: int, after: int, reason: str, user: User) -> None:
    if after == before:
        return
    movement = StockMovement(
        product_id=product.id,
        user_id=user.id,
        quantity=abs(after - before),
        type=MOVEMENT_IN if after > before else MOVEMENT_OUT,
        reason=reason,
    )
    db.add(movement)


def _to_out(product: Product) -> product_schemas.ProductOut:
    return product_schemas.ProductOut.model_validate(product)


# =========================
# PRODUCT LIST
# =========================
@router.get("", response_model=Envelope[Page[product_schemas.ProductOut]])
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, description="Match on name or SKU"),
    category: Optional[int] = Query(None, description="Category ID"),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    in_stock: Optional[bool] = Query(None),
    sort_by: str = Query("created_at"),
    order: Literal["asc", "desc"] = Query("desc"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = _active_products(db)

    if search:
        like = contains_pattern(search)
        query = query.filter(
            Product.name.ilike(like, escape=LIKE_ESCAPE) | Product.sku.ilike(like, escape=LIKE_ESCAPE)
        )
    if category is not None:
        query = query.filter(Product.category_id == category)
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)
    if in_stock is True:
        query = query.filter(Product.quantity > 0)
    elif in_stock is False:
        query = query.filter(Product.quantity == 0)

    sort_col = SORT_COLUMNS.get(sort_by.lower(), Product.created_at)
    query = query.order_by(sort_col.asc() if order == "asc" else sort_col.desc(), Product.id.desc())

    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()

    return Envelope(data=Page(
        items=[_to_out(p) for p in items],
        pagination=Pagination.build(page, limit, total),
    ))


# =========================
# SINGLE PRODUCT
# =========================
@router.get("/{product_id}", response_model=Envelope[product_schemas.ProductOut])
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return Envelope(data=_to_out(_get_product_or_404(db, product_id)))


# =========================
# CREATE PRODUCT
# =========================
@router.post("", response_model=Envelope[product_schemas.ProductOut], status_code=status.HTTP_201_CREATED)
def create_product(
    payload: product_schemas.ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_edit),
):
    sku = _norm_sku(payload.sku)
    _check_sku_free(db, sku)
    _check_references(db, payload)

    new_product = Product(**payload.model_dump(exclude={"sku"}), sku=sku)
    db.add(new_product)
    db.flush()

    # Opening stock enters the ledger like any other receipt
    _record_quantity_change(db, new_product, 0, new_product.quantity, "Initial stock", current_user)
    write_audit(db, table_name="products", record_id=new_product.id, action="CREATE",
                user_id=current_user.id, new_values=snapshot(new_product))
    db.commit()

    product = _get_product_or_404(db, new_product.id)
    logger.info("Product created: %s (SKU: %s) by user %s", product.name, product.sku, current_user.id)
    return Envelope(data=_to_out(product), message="Product created successfully")


# =========================
# UPDATE PRODUCT (PUT - full)
# =========================
@router.put("/{product_id}", response_model=Envelope[product_schemas.ProductOut])
def update_product(
    product_id: int,
    payload: product_schemas.ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_edit),
):
    # previous_quantity is read under the row lock
    product = lock_product(db, product_id)

    sku = _norm_sku(payload.sku)
    _check_sku_free(db, sku, exclude_id=product.id)
    _check_references(db, payload)

    old = snapshot(product)
    previous_quantity = product.quantity
    for key, value in payload.model_dump(exclude={"sku"}).items():
        setattr(product, key, value)
    product.sku = sku

    _record_quantity_change(db, product, previous_quantity, product.quantity, "Manual adjustment", current_user)
    db.flush()
    write_audit(db, table_name="products", record_id=product.id, action="UPDATE",
                user_id=current_user.id, old_values=old, new_values=snapshot(product))
    db.commit()

    # Reload so the embedded category/supplier reflect the new foreign keys
    db.expire_all()
    product = _get_product_or_404(db, product_id)
    logger.info("Product updated: %s (ID: %s) by user %s", product.name, product.id, current_user.id)
    return Envelope(data=_to_out(product), message="Product updated successfully")


# =========================
# DELETE (soft)
# =========================
@router.delete("/{product_id}", response_model=Envelope[product_schemas.ProductDeleted])
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    product = _get_product_or_404(db, product_id)

    old = snapshot(product)
    product.is_active = False
    db.flush()
    write_audit(db, table_name="products", record_id=product.id, action="DELETE",
                user_id=current_user.id, old_values=old, new_values=snapshot(product))
    db.commit()

    logger.info("Product deleted: %s (ID: %s) by user %s", product.name, product.id, current_user.id)
    return Envelope(
        data=product_schemas.ProductDeleted(id=product.id, name=product.name),
        message="Product deleted successfully",
    )

# backend/routes/stock.py
import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from config import settings
from database import get_db
from models.category import Category
from models.product import Product
from models.stock import StockMovement
from models.users import User
import schemas.stock as stock_schemas
from schemas.common import Envelope, Page, Pagination
from schemas.product import ProductRef
from utils.audit import snapshot, write_audit
from utils.errors import not_found
from utils.stock_ledger import apply_movement, remove_movement, replace_movement
from utils.tokenJWT import get_current_user, role_required

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stock", tags=["Stock"])

can_move_stock = role_required("admin", "user")
admin_only = role_required("admin")


def _movements_query(db: Session):
    return db.query(StockMovement).options(
        joinedload(StockMovement.product), joinedload(StockMovement.user)
    )


def _day_start(d: date) -> datetime:
    return datetime.combine(d, time.min)


def filter_by_dates(query, column, start_date: Optional[date], end_date: Optional[date]):
    # end_date is inclusive: everything before the following midnight
    if start_date:
        query = query.filter(column >= _day_start(start_date))
    if end_date:
        query = query.filter(column < _day_start(end_date + timedelta(days=1)))
    return query


# Read the product row with a write lock held until the transaction ends
def lock_product(db: Session, product_id: int, active_only: bool = True) -> Product:
    query = db.query(Product).filter(Product.id == product_id)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    product = query.with_for_update().populate_existing().first()
    if not product:
        raise not_found("PRODUCT_NOT_FOUND", "Product not found")
    return product


def _get_movement_or_404(db: Session, movement_id: int) -> StockMovement:
    movement = _movements_query(db).filter(StockMovement.id == movement_id).first()
    if not movement:
        raise not_found("MOVEMENT_NOT_FOUND", "Stock movement not found")
    return movement


# Lock the movement's product, then re-read the movement under that lock
def _lock_movement(db: Session, movement_id: int):
    product_id = _get_movement_or_404(db, movement_id).product_id
    product = lock_product(db, product_id, active_only=False)
    movement = (
        db.query(StockMovement)
        .filter(StockMovement.id == movement_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not movement:
        raise not_found("MOVEMENT_NOT_FOUND", "Stock movement not found")
    return movement, product


def _result(movement: StockMovement, product: Product, previous_quantity: int, new_quantity: int):
    return stock_schemas.StockChangeResult(
        movement_id=movement.id,
        product_id=product.id,
        product_name=product.name,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        movement=stock_schemas.StockMovementOut.model_validate(movement),
    )


# =========================
# RECORD A MOVEMENT
# =========================
@router.post("/products/{product_id}", response_model=Envelope[stock_schemas.StockChangeResult])
def record_movement(
    product_id: int,
    payload: stock_schemas.StockMovementCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_move_stock),
):
    product = lock_product(db, product_id)
    previous_quantity = product.quantity
    new_quantity = apply_movement(previous_quantity, payload.type, payload.quantity)

    try:
        product.quantity = new_quantity
        movement = StockMovement(
            product_id=product.id,
            user_id=current_user.id,
            quantity=payload.quantity,
            type=payload.type,
            reason=payload.reason,
            reference=payload.reference,
            notes=payload.notes,
        )
        db.add(movement)
        db.flush()
        write_audit(db, table_name="stock_movements", record_id=movement.id, action="CREATE",
                    user_id=current_user.id, new_values=snapshot(movement))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    movement = _get_movement_or_404(db, movement.id)
    logger.info(
        "Stock movement: %s %s units for product %s (ID: %s) by user %s",
        movement.type, movement.quantity, product.name, product.id, current_user.id,
    )
    return Envelope(
        data=_result(movement, product, previous_quantity, new_quantity),
        message="Stock updated successfully",
    )


# =========================
# LOW STOCK
# =========================
@router.get("/low-stock", response_model=Envelope[stock_schemas.LowStockReport])
def low_stock(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = (
        db.query(Product, Category.name)
        .outerjoin(Category, Product.category_id == Category.id)
        .filter(Product.is_active.is_(True), Product.quantity <= Product.low_stock_threshold)
        .order_by(Product.quantity.asc(), Product.name.asc())
        .all()
    )

    products = [
        stock_schemas.LowStockItem(
            id=p.id,
            name=p.name,
            sku=p.sku,
            quantity=p.quantity,
            low_stock_threshold=p.low_stock_threshold,
            category=category_name,
            status="out_of_stock" if p.quantity == 0 else "low_stock",
        )
        for p, category_name in rows
    ]
    out_of_stock = sum(1 for p in products if p.status == "out_of_stock")

    return Envelope(data=stock_schemas.LowStockReport(
        products=products,
        count=len(products),
        out_of_stock=out_of_stock,
        low_stock=len(products) - out_of_stock,
    ))


# =========================
# MOVEMENT HISTORY
# =========================
@router.get("/movements", response_model=Envelope[Page[stock_schemas.StockMovementOut]])
def list_movements(
    product_id: Optional[int] = Query(None),
    type: Optional[stock_schemas.StockMovementType] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = _movements_query(db)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if type:
        query = query.filter(StockMovement.type == type)
    query = filter_by_dates(query, StockMovement.created_at, start_date, end_date)

    total = query.count()
    items = (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return Envelope(data=Page(
        items=[stock_schemas.StockMovementOut.model_validate(m) for m in items],
        pagination=Pagination.build(page, limit, total),
    ))


@router.get("/products/{product_id}/movements", response_model=Envelope[stock_schemas.ProductMovementsPage])
def list_product_movements(
    product_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    product = db.query(Product).filter(Product.id == product_id, Product.is_active.is_(True)).first()
    if not product:
        raise not_found("PRODUCT_NOT_FOUND", "Product not found")

    query = _movements_query(db).filter(StockMovement.product_id == product_id)
    total = query.count()
    items = (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return Envelope(data=stock_schemas.ProductMovementsPage(
        product=ProductRef.model_validate(product),
        items=[stock_schemas.StockMovementOut.model_validate(m) for m in items],
        pagination=Pagination.build(page, limit, total),
    ))


@router.get("/movements/{movement_id}", response_model=Envelope[stock_schemas.StockMovementOut])
def get_movement(
    movement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    movement = _get_movement_or_404(db, movement_id)
    return Envelope(data=stock_schemas.StockMovementOut.model_validate(movement))


# =========================
# EDIT A MOVEMENT
# =========================
@router.put("/movements/{movement_id}", response_model=Envelope[stock_schemas.StockChangeResult])
def update_movement(
    movement_id: int,
    payload: stock_schemas.StockMovementCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_move_stock),
):
    movement, product = _lock_movement(db, movement_id)

    previous_quantity = product.quantity
    _, final_quantity = replace_movement(
        previous_quantity, movement.type, movement.quantity, payload.type, payload.quantity
    )

    try:
        old = snapshot(movement)
        product.quantity = final_quantity
        for key, value in payload.model_dump().items():
            setattr(movement, key, value)
        db.flush()
        write_audit(db, table_name="stock_movements", record_id=movement.id, action="UPDATE",
                    user_id=current_user.id, old_values=old, new_values=snapshot(movement))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    movement = _get_movement_or_404(db, movement_id)
    logger.info("Stock movement updated: ID %s by user %s", movement.id, current_user.id)
    return Envelope(
        data=_result(movement, product, previous_quantity, final_quantity),
        message="Stock movement updated successfully",
    )


# =========================
# DELETE A MOVEMENT
# =========================
@router.delete("/movements/{movement_id}", response_model=Envelope[stock_schemas.StockChangeResult])
def delete_movement(
    movement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    movement, product = _lock_movement(db, movement_id)

    previous_quantity = product.quantity
    new_quantity = remove_movement(previous_quantity, movement.type, movement.quantity)

    # Serialize before the row disappears
    removed = stock_schemas.StockMovementOut.model_validate(movement)
    try:
        product.quantity = new_quantity
        write_audit(db, table_name="stock_movements", record_id=movement.id, action="DELETE",
                    user_id=current_user.id, old_values=snapshot(movement))
        db.delete(movement)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Stock movement deleted: %s %s units for product %s (ID: %s) by user %s",
        removed.type, removed.quantity, product.name, product.id, current_user.id,
    )
    return Envelope(
        data=stock_schemas.StockChangeResult(
            movement_id=removed.id,
            product_id=product.id,
            product_name=product.name,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            movement=removed,
        ),
        message="Stock movement deleted successfully",
    )

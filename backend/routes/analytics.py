# backend/routes/analytics.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session, joinedload

from config import settings
from database import get_db
from models.category import Category
from models.product import Product
from models.stock import StockMovement
from models.supplier import Supplier
from models.users import User
import schemas.analytics as analytics_schemas
from schemas.common import Envelope, Pagination
from schemas.product import ProductOut
from schemas.stock import StockMovementOut
from routes.stock import filter_by_dates
from utils.errors import ApiError
from utils.search import LIKE_ESCAPE, contains_pattern
from utils.stock_ledger import MOVEMENT_IN, MOVEMENT_OUT
from utils.tokenJWT import get_current_user

router = APIRouter(
    prefix="/analytics",
    tags=["Analytics"]
)

# Number of rows in the "recent"/"top" dashboard widgets
TOP_LIMIT = 10
RECENT_MOVEMENTS_LIMIT = 10
MOVEMENT_FEED_LIMIT = 20

SEARCHABLE_FIELDS = ("name", "sku", "description")

stock_value = (Product.price * Product.quantity)


def _active_count(db: Session, model) -> int:
    return db.query(func.count(model.id)).filter(model.status == "active").scalar() or 0


def _recent_movements(db: Session, limit: int, start_date: Optional[date] = None, end_date: Optional[date] = None):
    query = db.query(StockMovement).options(
        joinedload(StockMovement.product), joinedload(StockMovement.user)
    )
    query = filter_by_dates(query, StockMovement.created_at, start_date, end_date)
    rows = query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(limit).all()
    return [StockMovementOut.model_validate(m) for m in rows]


def _top_products(db: Session) -> List[analytics_schemas.TopProductItem]:
    rows = (
        db.query(Product.id, Product.name, Product.sku, Product.quantity, Product.price,
                 stock_value.label("total_value"))
        .filter(Product.is_active.is_(True))
        .order_by(stock_value.desc(), Product.id.asc())
        .limit(TOP_LIMIT)
        .all()
    )
    return [
        analytics_schemas.TopProductItem(
            id=r.id, name=r.name, sku=r.sku, quantity=r.quantity,
            price=float(r.price), total_value=float(r.total_value or 0),
        )
        for r in rows
    ]


# Active categories left-joined with their active products
def _category_products(db: Session, *columns):
    return (
        db.query(Category.name.label("category_name"), *columns)
        .outerjoin(Product, and_(Product.category_id == Category.id, Product.is_active.is_(True)))
        .filter(Category.status == "active")
        .group_by(Category.id, Category.name)
    )


# === Dashboard Summary ===

@router.get("/dashboard", response_model=Envelope[analytics_schemas.DashboardStats])
def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    active_products = db.query(Product).filter(Product.is_active.is_(True))

    total_products = active_products.count()
    total_value = db.query(func.coalesce(func.sum(stock_value), 0)).filter(Product.is_active.is_(True)).scalar()

    # Low stock excludes empty shelves, those are counted separately
    low_stock_items = active_products.filter(
        Product.quantity <= Product.low_stock_threshold, Product.quantity > 0
    ).count()
    out_of_stock_items = active_products.filter(Product.quantity == 0).count()

    product_count = func.count(Product.id).label("product_count")
    distribution = (
        _category_products(db, product_count, func.coalesce(func.sum(stock_value), 0).label("category_value"))
        .order_by(product_count.desc(), Category.name.asc())
        .all()
    )

    return Envelope(data=analytics_schemas.DashboardStats(
        total_products=total_products,
        total_categories=_active_count(db, Category),
        total_suppliers=_active_count(db, Supplier),
        total_users=_active_count(db, User),
        total_value=float(total_value or 0),
        low_stock_items=low_stock_items,
        out_of_stock_items=out_of_stock_items,
        recent_movements=_recent_movements(db, RECENT_MOVEMENTS_LIMIT),
        category_distribution=[
            analytics_schemas.CategoryDistributionItem(
                category=row.category_name,
                product_count=int(row.product_count),
                value=float(row.category_value or 0),
            )
            for row in distribution
        ],
        top_products=_top_products(db),
    ))


# === Product Search ===

@router.get("/search", response_model=Envelope[analytics_schemas.SearchResult])
def search_products(
    q: Optional[str] = Query(None, description="Search text"),
    fields: Optional[str] = Query(None, description="Comma separated: name, sku, description"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not q:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "SEARCH_QUERY_REQUIRED", "Search query is required")

    requested = [f.strip() for f in fields.split(",")] if fields else list(SEARCHABLE_FIELDS)
    search_fields = [f for f in requested if f in SEARCHABLE_FIELDS]
    if not search_fields:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "INVALID_SEARCH_FIELDS", "Invalid search fields")

    like = contains_pattern(q)
    conditions = [getattr(Product, f).ilike(like, escape=LIKE_ESCAPE) for f in search_fields]
    query = (
        db.query(Product)
        .options(joinedload(Product.category), joinedload(Product.supplier))
        .filter(Product.is_active.is_(True), or_(*conditions))
    )

    total = query.count()
    # Name hits first, then SKU hits, then the rest
    rank = case(
        (Product.name.ilike(like, escape=LIKE_ESCAPE), 1),
        (Product.sku.ilike(like, escape=LIKE_ESCAPE), 2),
        else_=3,
    )
    items = query.order_by(rank, Product.name.asc()).offset((page - 1) * limit).limit(limit).all()

    return Envelope(data=analytics_schemas.SearchResult(
        query=q,
        fields=search_fields,
        items=[ProductOut.model_validate(p) for p in items],
        pagination=Pagination.build(page, limit, total),
    ))


# === Reports ===

@router.get("/reports/stock-value", response_model=Envelope[analytics_schemas.StockValueReport])
def stock_value_report(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    total_value = func.coalesce(func.sum(stock_value), 0).label("total_value")
    rows = (
        _category_products(
            db,
            func.count(Product.id).label("product_count"),
            func.coalesce(func.sum(Product.quantity), 0).label("total_quantity"),
            total_value,
            func.coalesce(func.avg(Product.price), 0).label("avg_price"),
        )
        .order_by(total_value.desc(), Category.name.asc())
        .all()
    )

    report = [
        analytics_schemas.StockValueItem(
            category=row.category_name,
            product_count=int(row.product_count),
            total_quantity=int(row.total_quantity or 0),
            total_value=float(row.total_value or 0),
            average_price=round(float(row.avg_price or 0), 2),
        )
        for row in rows
    ]

    return Envelope(data=analytics_schemas.StockValueReport(
        report=report,
        summary=analytics_schemas.StockValueSummary(
            total_categories=len(report),
            total_value=sum(item.total_value for item in report),
            total_products=sum(item.product_count for item in report),
        ),
    ))


@router.get("/reports/movements", response_model=Envelope[analytics_schemas.MovementReport])
def movements_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    day = func.date(StockMovement.created_at)
    query = db.query(
        day.label("date"),
        StockMovement.type,
        func.count(StockMovement.id).label("movement_count"),
        func.sum(StockMovement.quantity).label("total_quantity"),
    )
    query = filter_by_dates(query, StockMovement.created_at, start_date, end_date)
    rows = query.group_by(day, StockMovement.type).order_by(day.desc(), StockMovement.type.asc()).all()

    report = [
        analytics_schemas.MovementReportItem(
            date=row.date,
            type=row.type,
            movement_count=int(row.movement_count),
            total_quantity=int(row.total_quantity or 0),
        )
        for row in rows
    ]

    return Envelope(data=analytics_schemas.MovementReport(
        report=report,
        summary=analytics_schemas.MovementReportSummary(
            total_movements=sum(item.movement_count for item in report),
            total_in=sum(item.total_quantity for item in report if item.type == MOVEMENT_IN),
            total_out=sum(item.total_quantity for item in report if item.type == MOVEMENT_OUT),
        ),
        date_range=analytics_schemas.DateRange(start_date=start_date, end_date=end_date),
    ))


@router.get("/products/top", response_model=Envelope[List[analytics_schemas.TopProductItem]])
def top_products(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return Envelope(data=_top_products(db))


@router.get("/movements", response_model=Envelope[List[StockMovementOut]])
def recent_movements(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return Envelope(data=_recent_movements(db, MOVEMENT_FEED_LIMIT, start_date, end_date))

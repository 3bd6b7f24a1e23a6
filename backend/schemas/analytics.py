# schemas/analytics.py
import datetime
from typing import List, Optional
from pydantic import BaseModel

from schemas.common import Pagination
from schemas.product import ProductOut
from schemas.stock import StockMovementOut

# Dashboard building blocks
class CategoryDistributionItem(BaseModel):
    category: str
    product_count: int
    value: float

class TopProductItem(BaseModel):
    id: int
    name: str
    sku: str
    quantity: int
    price: float
    total_value: float

class DashboardStats(BaseModel):
    total_products: int
    total_categories: int
    total_suppliers: int
    total_users: int
    total_value: float
    low_stock_items: int
    out_of_stock_items: int
    recent_movements: List[StockMovementOut]
    category_distribution: List[CategoryDistributionItem]
    top_products: List[TopProductItem]

# Product search
class SearchResult(BaseModel):
    query: str
    fields: List[str]
    items: List[ProductOut]
    pagination: Pagination

# Stock value per category
class StockValueItem(BaseModel):
    category: str
    product_count: int
    total_quantity: int
    total_value: float
    average_price: float

class StockValueSummary(BaseModel):
    total_categories: int
    total_value: float
    total_products: int

class StockValueReport(BaseModel):
    report: List[StockValueItem]
    summary: StockValueSummary

# Movements grouped by day and direction
class MovementReportItem(BaseModel):
    date: datetime.date
    type: str
    movement_count: int
    total_quantity: int

class MovementReportSummary(BaseModel):
    total_movements: int
    total_in: int
    total_out: int

class DateRange(BaseModel):
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None

class MovementReport(BaseModel):
    report: List[MovementReportItem]
    summary: MovementReportSummary
    date_range: DateRange

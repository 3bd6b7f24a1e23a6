# backend/schemas/stock.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional, Literal

from schemas.common import ORMBase, Pagination
from schemas.product import ProductRef

# Define allowed types for stock movements
StockMovementType = Literal["in", "out"]

# Body of a new or edited stock movement
class StockMovementCreate(BaseModel):
    quantity: int = Field(gt=0)
    type: StockMovementType
    reason: str = Field(min_length=2, max_length=500)
    reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)

class UserRef(ORMBase):
    id: int
    name: str

# Schema for returning stock movement details
class StockMovementOut(ORMBase):
    id: int
    product_id: int
    quantity: int
    type: str
    reason: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    user_id: Optional[int] = None
    product: Optional[ProductRef] = None
    user: Optional[UserRef] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# Result of posting, editing or deleting a movement
class StockChangeResult(BaseModel):
    movement_id: int
    product_id: int
    product_name: str
    previous_quantity: int
    new_quantity: int
    movement: StockMovementOut

# Paginated movement history of a single product
class ProductMovementsPage(BaseModel):
    product: ProductRef
    items: List[StockMovementOut]
    pagination: Pagination

# Low stock report
class LowStockItem(ORMBase):
    id: int
    name: str
    sku: str
    quantity: int
    low_stock_threshold: int
    category: Optional[str] = None
    status: Literal["out_of_stock", "low_stock"]

class LowStockReport(BaseModel):
    products: List[LowStockItem]
    count: int
    out_of_stock: int
    low_stock: int

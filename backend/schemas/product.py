# backend/schemas/product.py
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional

from schemas.common import ORMBase
from schemas.category import CategorySummary
from schemas.supplier import SupplierSummary


# Body of POST and PUT /products; PUT replaces every field
class ProductCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    description: Optional[str] = None
    sku: str = Field(min_length=3, max_length=100)
    category_id: int = Field(gt=0)
    supplier_id: int = Field(gt=0)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    quantity: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=10, ge=0)


# Full product representation
class ProductOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    sku: str
    category_id: Optional[int] = None
    supplier_id: Optional[int] = None
    price: float
    quantity: int
    low_stock_threshold: int
    stock_status: str
    is_active: bool
    category: Optional[CategorySummary] = None
    supplier: Optional[SupplierSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Minimal product reference embedded in stock payloads
class ProductRef(ORMBase):
    id: int
    name: str
    sku: str


class ProductDeleted(ORMBase):
    id: int
    name: str

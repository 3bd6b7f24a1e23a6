from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from schemas.common import ORMBase


class CategoryCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    description: Optional[str] = None


class CategoryOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None
    status: str
    product_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Embedded in product payloads
class CategorySummary(ORMBase):
    id: int
    name: str
    description: Optional[str] = None

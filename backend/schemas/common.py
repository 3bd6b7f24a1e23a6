# schemas/common.py
import math
from datetime import datetime, timezone
from typing import Any, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

StatusFilter = Literal["active", "inactive", "all"]
RecordStatus = Literal["active", "inactive"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Success envelope wrapped around every response payload
class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: ErrorBody
    timestamp: datetime = Field(default_factory=utcnow)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


# Paginated list payload
class Page(BaseModel, Generic[T]):
    items: List[T]
    pagination: Pagination


class StatusUpdate(BaseModel):
    status: RecordStatus

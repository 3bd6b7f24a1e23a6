from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from schemas.common import ORMBase, RecordStatus


class SupplierCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    email: EmailStr
    phone: str = Field(min_length=10, max_length=20)
    address: str = Field(min_length=10, max_length=500)
    contact_person: str = Field(min_length=2, max_length=255)


class SupplierUpdate(BaseModel):
    """Schema for PUT requests - all fields optional."""
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=10, max_length=20)
    address: Optional[str] = Field(None, min_length=10, max_length=500)
    contact_person: Optional[str] = Field(None, min_length=2, max_length=255)
    status: Optional[RecordStatus] = None


class SupplierOut(ORMBase):
    id: int
    name: str
    email: str
    phone: str
    address: str
    contact_person: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Embedded in product payloads
class SupplierSummary(ORMBase):
    id: int
    name: str
    email: str
    phone: str
    contact_person: str

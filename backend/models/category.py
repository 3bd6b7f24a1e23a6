# backend/models/category.py
from sqlalchemy import Column, Integer, String, Text, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

# Product grouping; deactivated instead of removed
class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    products = relationship("Product", back_populates="category")

    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive')", name="ck_categories_status"),
    )

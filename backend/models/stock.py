# backend/models/stock.py
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base

class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Always positive; direction comes from `type`
    quantity = Column(Integer, nullable=False)
    # "in" adds to the product quantity, "out" removes from it
    type = Column(String(10), nullable=False)

    reason = Column(Text, nullable=True)
    reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="movements")
    user = relationship("User")

    __table_args__ = (
        CheckConstraint("type IN ('in', 'out')", name="ck_stock_movements_type"),
        CheckConstraint("quantity > 0", name="ck_stock_movements_quantity"),
    )

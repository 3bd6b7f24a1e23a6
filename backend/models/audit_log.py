from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Index, func
from database import Base

# Write-only trail of row changes made through the API
class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    table_name = Column(String(100), nullable=False)
    record_id = Column(Integer, nullable=True)
    action = Column(String(50), nullable=False)

    # Row snapshots before and after the change
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_audit_logs_table_record", "table_name", "record_id"),
    )

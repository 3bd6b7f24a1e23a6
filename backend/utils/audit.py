from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from models.audit_log import AuditLog

# Columns never copied into audit snapshots
_SKIP_COLUMNS = {"password_hash"}


def snapshot(obj) -> dict:
    """Plain-JSON dict of a model's column values."""
    data = {}
    for attr in inspect(obj).mapper.column_attrs:
        if attr.key in _SKIP_COLUMNS:
            continue
        value = getattr(obj, attr.key)
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        elif value is not None and not isinstance(value, (int, float, str, bool)):
            value = str(value)
        data[attr.key] = value
    return data


# Stage an audit row in the caller's transaction; committed together with the change
def write_audit(db: Session, *, table_name: str, record_id: Optional[int], action: str,
                user_id: Optional[int], old_values: Optional[dict] = None, new_values: Optional[dict] = None):
    entry = AuditLog(
        table_name=table_name, record_id=record_id, action=action,
        old_values=old_values, new_values=new_values, user_id=user_id,
    )
    db.add(entry)
    return entry

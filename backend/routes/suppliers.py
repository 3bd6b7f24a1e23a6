# backend/routes/suppliers.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from models.supplier import Supplier
from models.users import User
from schemas.common import Envelope, StatusFilter, StatusUpdate
from schemas.supplier import SupplierCreate, SupplierOut, SupplierUpdate
from utils.audit import snapshot, write_audit
from utils.errors import ApiError, not_found
from utils.tokenJWT import get_current_user, role_required

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/suppliers", tags=["Suppliers"])

can_edit = role_required("admin", "user")
admin_only = role_required("admin")


def _get_supplier_or_404(db: Session, supplier_id: int) -> Supplier:
    supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
    if not supplier:
        raise not_found("SUPPLIER_NOT_FOUND", "Supplier not found")
    return supplier


def _check_email_free(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Supplier.id).filter(func.lower(Supplier.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(Supplier.id != exclude_id)
    if query.first():
        raise ApiError(status.HTTP_409_CONFLICT, "SUPPLIER_EXISTS", "Supplier with this email already exists")


def _apply_changes(db: Session, supplier: Supplier, changes: dict, action: str, user: User) -> Supplier:
    old = snapshot(supplier)
    for key, value in changes.items():
        setattr(supplier, key, value)
    db.flush()
    write_audit(db, table_name="suppliers", record_id=supplier.id, action=action,
                user_id=user.id, old_values=old, new_values=snapshot(supplier))
    db.commit()
    db.refresh(supplier)
    return supplier


@router.get("", response_model=Envelope[List[SupplierOut]])
def list_suppliers(
    status_filter: StatusFilter = Query("active", alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Supplier)
    if status_filter != "all":
        query = query.filter(Supplier.status == status_filter)
    suppliers = query.order_by(Supplier.name.asc()).all()
    return Envelope(
        data=[SupplierOut.model_validate(s) for s in suppliers],
        message="Suppliers retrieved successfully",
    )


@router.get("/{supplier_id}", response_model=Envelope[SupplierOut])
def get_supplier(
    supplier_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    supplier = _get_supplier_or_404(db, supplier_id)
    return Envelope(data=SupplierOut.model_validate(supplier), message="Supplier retrieved successfully")


@router.post("", response_model=Envelope[SupplierOut], status_code=status.HTTP_201_CREATED)
def create_supplier(
    payload: SupplierCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_edit),
):
    _check_email_free(db, payload.email)

    supplier = Supplier(**payload.model_dump(), status="active")
    db.add(supplier)
    db.flush()
    write_audit(db, table_name="suppliers", record_id=supplier.id, action="CREATE",
                user_id=current_user.id, new_values=snapshot(supplier))
    db.commit()
    db.refresh(supplier)

    logger.info("Supplier created: %s (ID: %s) by user %s", supplier.name, supplier.id, current_user.id)
    return Envelope(data=SupplierOut.model_validate(supplier), message="Supplier created successfully")


# Partial update: only the fields present in the body change
@router.put("/{supplier_id}", response_model=Envelope[SupplierOut])
def update_supplier(
    supplier_id: int,
    payload: SupplierUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_edit),
):
    supplier = _get_supplier_or_404(db, supplier_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "NO_UPDATES", "No fields to update")
    if "email" in changes:
        _check_email_free(db, changes["email"], exclude_id=supplier.id)

    supplier = _apply_changes(db, supplier, changes, "UPDATE", current_user)
    logger.info("Supplier updated: %s (ID: %s) by user %s", supplier.name, supplier.id, current_user.id)
    return Envelope(data=SupplierOut.model_validate(supplier), message="Supplier updated successfully")


@router.patch("/{supplier_id}/status", response_model=Envelope[SupplierOut])
def update_supplier_status(
    supplier_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_edit),
):
    supplier = _get_supplier_or_404(db, supplier_id)
    supplier = _apply_changes(db, supplier, {"status": payload.status}, "STATUS_CHANGE", current_user)

    verb = "activated" if supplier.status == "active" else "deactivated"
    logger.info("Supplier %s: %s (ID: %s) by user %s", verb, supplier.name, supplier.id, current_user.id)
    return Envelope(data=SupplierOut.model_validate(supplier), message=f"Supplier {verb} successfully")


# Soft delete
@router.delete("/{supplier_id}", response_model=Envelope[SupplierOut])
def delete_supplier(
    supplier_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    supplier = _get_supplier_or_404(db, supplier_id)
    supplier = _apply_changes(db, supplier, {"status": "inactive"}, "DELETE", current_user)

    logger.info("Supplier deactivated: %s (ID: %s) by user %s", supplier.name, supplier.id, current_user.id)
    return Envelope(data=SupplierOut.model_validate(supplier), message="Supplier deactivated successfully")

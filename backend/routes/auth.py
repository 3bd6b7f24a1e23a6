# backend/routes/auth.py
import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas import user as schemas
from schemas.common import Envelope, StatusFilter, StatusUpdate
from utils.audit import snapshot, write_audit
from utils.errors import ApiError, not_found
from utils.hashing import get_password_hash, verify_password
from utils.tokenJWT import create_access_token, get_current_user, role_required

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

admin_only = role_required("admin")


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _email_taken(db: Session, email: str, exclude_id: int = None) -> bool:
    query = db.query(User.id).filter(func.lower(User.email) == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise not_found("USER_NOT_FOUND", "User not found")
    return user


# Refuse to leave the system without an active admin
def _ensure_not_last_admin(db: Session, user: User) -> None:
    if user.role != "admin" or user.status != "active":
        return
    active_admins = db.query(User).filter(User.role == "admin", User.status == "active").count()
    if active_admins <= 1:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "LAST_ADMIN", "Cannot deactivate the last active admin user")


def _ensure_not_self(user: User, current_user: User) -> None:
    if user.id == current_user.id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "CANNOT_DEACTIVATE_SELF", "You cannot deactivate your own account")


def _create_user(db: Session, payload: schemas.UserCreate, role: str, actor_id: int = None) -> User:
    email = _normalize_email(payload.email)
    if _email_taken(db, email):
        raise ApiError(status.HTTP_409_CONFLICT, "EMAIL_EXISTS", "Email already registered")

    new_user = User(
        name=payload.name,
        email=email,
        password_hash=get_password_hash(payload.password),
        role=role,
        status=payload.status,
    )
    db.add(new_user)
    db.flush()
    write_audit(db, table_name="users", record_id=new_user.id, action="CREATE",
                user_id=actor_id if actor_id is not None else new_user.id, new_values=snapshot(new_user))
    db.commit()
    db.refresh(new_user)
    return new_user


# Authenticate user and issue JWT token
@router.post("/login", response_model=Envelope[schemas.Token])
def login(payload: schemas.UserLogin, db: Session = Depends(get_db)):
    email = _normalize_email(payload.email)
    db_user = db.query(User).filter(func.lower(User.email) == email).first()

    if not db_user or not verify_password(payload.password, db_user.password_hash):
        logger.warning("Failed login attempt for %s", email)
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "INVALID_CREDENTIALS", "Invalid email or password")

    if not db_user.is_active:
        raise ApiError(status.HTTP_403_FORBIDDEN, "ACCOUNT_INACTIVE", "Account is inactive")

    db_user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(db_user)

    access_token = create_access_token(data={"sub": db_user.email, "user_id": db_user.id, "role": db_user.role})
    logger.info("User %s logged in", db_user.email)

    return Envelope(
        data=schemas.Token(token=access_token, user=schemas.UserSummary.model_validate(db_user)),
        message="Login successful",
    )


# Self-service registration; always creates a regular user
@router.post("/register", response_model=Envelope[schemas.RegisterResponse], status_code=status.HTTP_201_CREATED)
def register(payload: schemas.UserCreate, db: Session = Depends(get_db)):
    new_user = _create_user(db, payload.model_copy(update={"status": "active"}), role="user")
    logger.info("New user registered: %s", new_user.email)
    return Envelope(
        data=schemas.RegisterResponse(user=schemas.UserResponse.model_validate(new_user)),
        message="User registered successfully",
    )


# Retrieve current authenticated user details
@router.get("/me", response_model=Envelope[schemas.UserResponse])
def me(current_user: User = Depends(get_current_user)):
    return Envelope(data=schemas.UserResponse.model_validate(current_user))


# ---- User management (admin only) ----

@router.get("/users", response_model=Envelope[List[schemas.UserResponse]])
def list_users(
    status_filter: StatusFilter = Query("active", alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    query = db.query(User)
    if status_filter != "all":
        query = query.filter(User.status == status_filter)
    users = query.order_by(User.created_at.desc(), User.id.desc()).all()
    return Envelope(data=[schemas.UserResponse.model_validate(u) for u in users])


@router.post("/users", response_model=Envelope[schemas.RegisterResponse], status_code=status.HTTP_201_CREATED)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    new_user = _create_user(db, payload, role=payload.role, actor_id=current_user.id)
    logger.info("User %s (ID: %s) created by admin %s", new_user.email, new_user.id, current_user.id)
    return Envelope(
        data=schemas.RegisterResponse(user=schemas.UserResponse.model_validate(new_user)),
        message="User created successfully",
    )


@router.put("/users/{user_id}", response_model=Envelope[schemas.UserResponse])
def update_user(
    user_id: int,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    user = _get_user_or_404(db, user_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "NO_UPDATES", "No fields to update")

    # Demoting or deactivating an admin is subject to the same protection as deleting one
    deactivating = changes.get("status") == "inactive"
    demoting = "role" in changes and changes["role"] != "admin"
    if deactivating or demoting:
        _ensure_not_last_admin(db, user)
    if deactivating:
        _ensure_not_self(user, current_user)

    if "email" in changes:
        changes["email"] = _normalize_email(changes["email"])
        if _email_taken(db, changes["email"], exclude_id=user.id):
            raise ApiError(status.HTTP_409_CONFLICT, "EMAIL_EXISTS", "Email already registered")
    if "password" in changes:
        changes["password_hash"] = get_password_hash(changes.pop("password"))

    old = snapshot(user)
    for key, value in changes.items():
        setattr(user, key, value)
    db.flush()
    write_audit(db, table_name="users", record_id=user.id, action="UPDATE",
                user_id=current_user.id, old_values=old, new_values=snapshot(user))
    db.commit()
    db.refresh(user)

    logger.info("User updated: %s (ID: %s) by user %s", user.email, user.id, current_user.id)
    return Envelope(data=schemas.UserResponse.model_validate(user), message="User updated successfully")


@router.patch("/users/{user_id}/status", response_model=Envelope[schemas.UserResponse])
def update_user_status(
    user_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    user = _get_user_or_404(db, user_id)
    if payload.status == "inactive":
        _ensure_not_last_admin(db, user)
        _ensure_not_self(user, current_user)

    old = snapshot(user)
    user.status = payload.status
    db.flush()
    write_audit(db, table_name="users", record_id=user.id, action="STATUS_CHANGE",
                user_id=current_user.id, old_values=old, new_values=snapshot(user))
    db.commit()
    db.refresh(user)

    logger.info("User status updated: %s (ID: %s) to %s by user %s", user.email, user.id, user.status, current_user.id)
    return Envelope(data=schemas.UserResponse.model_validate(user), message="User status updated successfully")


# Soft delete: the account is deactivated, never removed
@router.delete("/users/{user_id}", response_model=Envelope[schemas.UserResponse])
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    user = _get_user_or_404(db, user_id)
    _ensure_not_last_admin(db, user)
    _ensure_not_self(user, current_user)

    old = snapshot(user)
    user.status = "inactive"
    db.flush()
    write_audit(db, table_name="users", record_id=user.id, action="DELETE",
                user_id=current_user.id, old_values=old, new_values=snapshot(user))
    db.commit()
    db.refresh(user)

    logger.info("User deactivated: %s (ID: %s) by user %s", user.email, user.id, current_user.id)
    return Envelope(data=schemas.UserResponse.model_validate(user), message="User deactivated successfully")

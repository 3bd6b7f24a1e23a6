from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional

from schemas.common import ORMBase, RecordStatus

UserRole = Literal["user", "admin"]

# Schema for user authentication credentials
class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)

# Schema for user registration and admin-side user creation
class UserCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6)
    role: UserRole = "user"
    status: RecordStatus = "active"

# Partial update, every field optional
class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[UserRole] = None
    status: Optional[RecordStatus] = None

# Short user card embedded in login responses
class UserSummary(ORMBase):
    id: int
    name: str
    email: str
    role: str

# Output schema for user profile details
class UserResponse(UserSummary):
    status: str
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# Login payload: token plus the user it was issued for
class Token(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserSummary

class RegisterResponse(BaseModel):
    user: UserResponse

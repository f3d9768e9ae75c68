from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional, Literal


RoleType = Literal["ADMIN", "USER"]


class UserBase(BaseModel):
    """Base user schema."""

    email: EmailStr
    name: str = Field(..., max_length=255)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters long")
        return v


class UserCreate(UserBase):
    """Schema for an admin creating a user."""

    password: str = Field(..., min_length=6)
    role: RoleType = "USER"


class UserUpdate(BaseModel):
    """Partial user update (admin only)."""

    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, max_length=255)
    role: Optional[RoleType] = None
    is_active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters long")
        return v


class UserResponse(BaseModel):
    """Public view of a user; never carries the password hash."""

    id: str
    email: str
    name: str
    role: RoleType
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str = Field(..., min_length=1)

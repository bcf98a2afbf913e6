"""
User models.
Accounts exist so that every stream request can be tied to an owner.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserCreate(BaseModel):
    """Registration payload."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """Public view of an account."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: EmailStr
    name: str
    created_at: datetime


class User(BaseModel):
    """Stored account row, including the bcrypt hash."""
    id: str
    email: EmailStr
    name: str
    password_hash: str
    created_at: datetime

    def public(self) -> UserResponse:
        return UserResponse(
            id=self.id, email=self.email, name=self.name, created_at=self.created_at
        )


class TokenResponse(BaseModel):
    """Issued after register or login."""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(min_length=3, max_length=20)
    email: EmailStr
    password: str = Field(min_length=6)
    admin_code: Optional[str] = Field(default=None, alias="adminCode")

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be between 3 and 20 characters")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    role: str
    is_admin: Optional[bool] = False
    provider: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    success: bool
    message: str
    user: Optional[UserResponse] = None
    token: Optional[str] = None


class Pagination(BaseModel):
    currentPage: int
    totalPages: int
    totalItems: int
    itemsPerPage: int


class UserListResponse(BaseModel):
    success: bool
    message: str
    data: List[UserResponse]
    pagination: Pagination


class PrincipalOut(BaseModel):
    id: str
    role: str


class ProfileResponse(BaseModel):
    success: bool = True
    message: str
    user: PrincipalOut

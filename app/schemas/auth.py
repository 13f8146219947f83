"""Authentication schemas"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr

from app.models.user import UserRole


class Token(BaseModel):
    """JWT token response"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class PortalToken(BaseModel):
    """Driver or restaurant portal token"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    actor: str
    actor_id: str
    name: str


class TokenPayload(BaseModel):
    """JWT token payload"""
    sub: str  # user id, driver id or restaurant slug
    actor: str  # staff, driver, restaurant
    role: Optional[str] = None
    exp: datetime


class LoginRequest(BaseModel):
    """Login request"""
    email: EmailStr
    password: str


class DriverLoginRequest(BaseModel):
    """Driver portal login"""
    phone: str
    password: str


class RestaurantLoginRequest(BaseModel):
    """Restaurant portal login"""
    slug: str
    password: str


class RefreshRequest(BaseModel):
    """Token refresh request"""
    refresh_token: str


class UserCreate(BaseModel):
    """Create staff user request"""
    email: EmailStr
    password: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole = UserRole.DISPATCHER


class UserResponse(BaseModel):
    """User response"""
    id: UUID
    email: str
    full_name: Optional[str]
    phone: Optional[str]
    role: UserRole
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime]

    class Config:
        from_attributes = True

"""Pydantic schemas for authentication endpoints."""

from webapp.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    """Request model for user registration."""
    email: str
    password: str


class RegisterResponse(CamelModel):
    """Response model for user registration."""
    user_id: str
    email: str


class LoginRequest(CamelModel):
    """Request model for user login."""
    email: str
    password: str


class UserResponse(CamelModel):
    user_id: str
    email: str


class LoginResponse(CamelModel):
    """Response model for user login."""
    token: str
    user: UserResponse

"""Request/response models for authentication endpoints."""

from typing import Optional
from pydantic import BaseModel, Field


class DevLoginRequest(BaseModel):
    """Request model for local development login."""
    email: str = Field(..., description="User email address")
    name: Optional[str] = Field(None, description="User display name")
    user_id: Optional[str] = Field(None, description="Explicit user ID (derived from email if omitted)")


class AuthResponse(BaseModel):
    """Response model for authentication."""
    access_token: str
    token_type: str = "bearer"
    user: dict

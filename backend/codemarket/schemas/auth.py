"""Authentication schemas for user registration, login, and token management."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, EmailStr, Field, field_validator


class UserRegister(BaseModel):
    """Schema for user registration."""

    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=8)

    class Config:
        extra = "forbid"

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Usernames are letters, digits, dashes and underscores."""
        v = v.strip()
        if not all(c.isalnum() or c in "-_" for c in v):
            raise ValueError("Username may only contain letters, digits, '-' and '_'")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        """Validate password strength: min 8 chars, at least 1 uppercase, 1 lowercase, 1 number."""
        if not any(c.isupper() for c in v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not any(c.islower() for c in v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not any(c.isdigit() for c in v):
            raise ValueError("Password must contain at least one digit")
        return v


class UserLogin(BaseModel):
    """Schema for user login."""

    email: EmailStr
    password: str

    class Config:
        extra = "forbid"


class Token(BaseModel):
    """Schema for JWT token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshTokenRequest(BaseModel):
    """Schema for refresh token request."""

    refresh_token: str

    class Config:
        extra = "forbid"


class OAuthLoginResponse(BaseModel):
    """Where to send the browser to start an OAuth login."""

    authorization_url: str
    state: str


class OAuthCallbackRequest(BaseModel):
    """Authorization code returned by the identity provider."""

    code: str = Field(..., min_length=1)
    state: Optional[str] = None

    class Config:
        extra = "forbid"


class UserUpdate(BaseModel):
    """Schema for profile updates."""

    bio: Optional[str] = Field(None, max_length=500)
    skills: Optional[List[str]] = None
    website: Optional[str] = Field(None, max_length=255)
    profile_image: Optional[str] = None

    class Config:
        extra = "forbid"


class UserResponse(BaseModel):
    """Schema for the caller's own profile (never expose password_hash)."""

    uuid: str
    username: str
    email: str
    bio: str = ""
    skills: List[str] = []
    website: str = ""
    profile_image: Optional[str] = None
    reputation: int = 0
    is_verified: bool = False
    github_username: Optional[str] = None
    github_profile_url: Optional[str] = None
    user_role: str
    created_at: datetime

    class Config:
        from_attributes = True


class PublicUserResponse(BaseModel):
    """Schema for another user's public profile."""

    uuid: str
    username: str
    bio: str = ""
    skills: List[str] = []
    website: str = ""
    profile_image: Optional[str] = None
    reputation: int = 0
    is_verified: bool = False
    github_username: Optional[str] = None
    github_profile_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserProjectSummary(BaseModel):
    uuid: str
    title: str
    category: str
    views: int
    downloads: int
    created_at: datetime

    class Config:
        from_attributes = True


class PublicProfileResponse(BaseModel):
    """Public profile plus the author's published projects."""

    user: PublicUserResponse
    projects: List[UserProjectSummary]

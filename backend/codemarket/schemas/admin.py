"""Pydantic schemas for admin endpoints."""
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel

from codemarket.schemas.projects import ProjectResponse


class AdminUserItem(BaseModel):
    """Schema for a user row in admin listings."""
    uuid: str
    username: str
    email: str
    is_verified: bool
    user_role: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class AdminUserListResponse(BaseModel):
    items: List[AdminUserItem]
    total: int
    skip: int
    limit: int


class AdminUserUpdate(BaseModel):
    """Moderation fields an admin may change on a user."""
    is_verified: Optional[bool] = None
    user_role: Optional[Literal["user", "admin"]] = None
    status: Optional[Literal["active", "suspended"]] = None

    class Config:
        extra = "forbid"


class AdminProjectUpdate(BaseModel):
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None

    class Config:
        extra = "forbid"


class PlatformStats(BaseModel):
    total_users: int
    total_projects: int
    total_licenses: int
    total_reviews: int
    total_earnings: float


class AdminStatsResponse(BaseModel):
    stats: PlatformStats
    recent_users: List[AdminUserItem]
    recent_projects: List[ProjectResponse]

"""Schemas for review endpoints."""
from datetime import datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, Field


class ReviewCreate(BaseModel):
    """Schema for creating a review."""

    project_id: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5, description="Rating score 1-5")
    comment: str = Field("", max_length=1000, description="Optional review text")

    class Config:
        extra = "forbid"


class ReviewUpdate(BaseModel):
    """Schema for updating a review."""

    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)

    class Config:
        extra = "forbid"


class ReviewerSummary(BaseModel):
    uuid: str
    username: str
    profile_image: Optional[str] = None

    class Config:
        from_attributes = True


class ReviewResponse(BaseModel):
    """Schema for review response."""

    uuid: str
    project_id: str
    reviewer_id: str
    reviewer: Optional[ReviewerSummary] = None
    rating: int
    comment: str
    is_verified_purchase: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReviewStats(BaseModel):
    average_rating: float
    total_reviews: int
    rating_distribution: Dict[int, int]


class ReviewListResponse(BaseModel):
    """Schema for paginated review list."""

    reviews: List[ReviewResponse]
    total: int
    page: int
    page_size: int


class ProjectReviewsResponse(ReviewListResponse):
    stats: ReviewStats

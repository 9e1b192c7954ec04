"""Schemas for project endpoints."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import inspect

from codemarket.schemas.licenses import LicenseResponse
from codemarket.schemas.reviews import ReviewResponse

Category = Literal["web", "mobile", "desktop", "api", "library", "tool", "game", "other"]
OfferType = Literal["free", "paid", "freemium"]
AccessLevel = Literal["public", "licensed", "private"]
ProjectStatus = Literal["draft", "published"]


class ProjectOffer(BaseModel):
    """License offer a project is sold under."""

    type: OfferType = "free"
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    marketplace_fee_pct: Optional[Decimal] = Field(None, ge=0, le=100)
    currency: str = Field("USD", min_length=3, max_length=3)
    free_features: List[str] = []
    paid_features: List[str] = []

    class Config:
        extra = "forbid"

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class ProjectAccess(BaseModel):
    view_code: AccessLevel = "public"
    run_app: AccessLevel = "public"
    download_code: AccessLevel = "licensed"

    class Config:
        extra = "forbid"


class ProjectRepository(BaseModel):
    free_url: str = Field("", max_length=255)
    paid_url: str = Field("", max_length=255)
    branch: str = Field("main", min_length=1, max_length=100)
    is_private: bool = False

    class Config:
        extra = "forbid"


class ProjectDemo(BaseModel):
    url: str = Field("", max_length=255)
    screenshots: List[str] = []

    class Config:
        extra = "forbid"


def _normalise_tags(tags: List[str]) -> List[str]:
    cleaned = []
    for tag in tags:
        tag = tag.strip().lower()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


class ProjectCreate(BaseModel):
    """Schema for creating a project listing."""

    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=2000)
    category: Category
    tags: List[str] = []
    tech_stack: List[str] = []
    license: ProjectOffer = ProjectOffer()
    access: ProjectAccess = ProjectAccess()
    repository: ProjectRepository = ProjectRepository()
    demo: ProjectDemo = ProjectDemo()
    status: ProjectStatus = "published"

    class Config:
        extra = "forbid"

    @field_validator("tags")
    @classmethod
    def normalise_tags(cls, v: List[str]) -> List[str]:
        return _normalise_tags(v)


class ProjectUpdate(BaseModel):
    """Schema for updating a project; omitted fields are left unchanged."""

    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    category: Optional[Category] = None
    tags: Optional[List[str]] = None
    tech_stack: Optional[List[str]] = None
    license: Optional[ProjectOffer] = None
    access: Optional[ProjectAccess] = None
    repository: Optional[ProjectRepository] = None
    demo: Optional[ProjectDemo] = None
    status: Optional[ProjectStatus] = None

    class Config:
        extra = "forbid"

    @field_validator("tags")
    @classmethod
    def normalise_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else _normalise_tags(v)


class AuthorSummary(BaseModel):
    uuid: str
    username: str
    profile_image: Optional[str] = None
    reputation: int = 0

    class Config:
        from_attributes = True


class ProjectOfferResponse(BaseModel):
    type: str
    price: float
    seller_price: float
    marketplace_fee_pct: float
    currency: str
    free_features: List[str]
    paid_features: List[str]


class ProjectStats(BaseModel):
    views: int
    downloads: int
    stars: int
    forks: int


class ProjectResponse(BaseModel):
    """Schema for project response."""

    uuid: str
    title: str
    description: str
    category: str
    tags: List[str]
    tech_stack: List[str]
    license: ProjectOfferResponse
    access: ProjectAccess
    repository: ProjectRepository
    demo: ProjectDemo
    stats: ProjectStats
    status: str
    is_active: bool
    is_featured: bool
    author_id: str
    author: Optional[AuthorSummary] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_project(cls, project, include_paid_url: bool = True) -> "ProjectResponse":
        """Flatten a Project row into the nested response shape."""
        # Never trigger a lazy load here; async sessions cannot do implicit IO
        author = None if "author" in inspect(project).unloaded else project.author
        return cls(
            uuid=project.uuid,
            title=project.title,
            description=project.description,
            category=project.category,
            tags=project.tags or [],
            tech_stack=project.tech_stack or [],
            license=ProjectOfferResponse(
                type=project.license_type,
                price=float(project.price or 0),
                seller_price=float(project.seller_price or 0),
                marketplace_fee_pct=float(project.marketplace_fee_pct or 0),
                currency=project.currency,
                free_features=project.free_features or [],
                paid_features=project.paid_features or [],
            ),
            access=ProjectAccess(
                view_code=project.access_view_code,
                run_app=project.access_run_app,
                download_code=project.access_download_code,
            ),
            repository=ProjectRepository(
                free_url=project.repository_free_url or "",
                paid_url=(project.repository_paid_url or "") if include_paid_url else "",
                branch=project.repository_branch,
                is_private=project.repository_is_private,
            ),
            demo=ProjectDemo(url=project.demo_url or "", screenshots=project.demo_screenshots or []),
            stats=ProjectStats(
                views=project.views,
                downloads=project.downloads,
                stars=project.stars,
                forks=project.forks,
            ),
            status=project.status,
            is_active=project.is_active,
            is_featured=project.is_featured,
            author_id=project.author_id,
            author=AuthorSummary.model_validate(author) if author else None,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class ProjectListResponse(BaseModel):
    """Schema for paginated project list."""

    items: List[ProjectResponse]
    total: int
    skip: int
    limit: int


class CapabilityAccess(BaseModel):
    view_code: bool
    run_app: bool
    download_code: bool


class ProjectDetailResponse(BaseModel):
    """Project plus the caller's license, access decisions and recent reviews."""

    project: ProjectResponse
    reviews: List[ReviewResponse]
    average_rating: Optional[float] = None
    user_license: Optional[LicenseResponse] = None
    can_access: CapabilityAccess

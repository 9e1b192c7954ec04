"""Schemas for the seller and buyer dashboard."""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel

from codemarket.schemas.licenses import LicenseResponse
from codemarket.schemas.projects import ProjectResponse


class SellerStats(BaseModel):
    """Totals over the caller's published, active projects."""

    total_projects: int = 0
    total_views: int = 0
    total_downloads: int = 0
    total_stars: int = 0
    total_revenue: float = 0.0
    monthly_revenue: float = 0.0
    paid_sales: int = 0
    free_grants: int = 0


class ActivityItem(BaseModel):
    type: str
    message: str
    date: datetime
    revenue: float = 0.0


class DashboardResponse(BaseModel):
    published_projects: List[ProjectResponse]
    draft_projects: List[ProjectResponse]
    purchased_licenses: List[LicenseResponse]
    seller_stats: SellerStats
    recent_activity: List[ActivityItem]


class PurchasedProject(BaseModel):
    uuid: str
    title: str
    category: str
    author_id: str

    class Config:
        from_attributes = True


class PurchaseItem(BaseModel):
    license: LicenseResponse
    project: PurchasedProject


class PurchaseStats(BaseModel):
    total_purchases: int
    total_spent: float
    categories_count: Dict[str, int]


class PurchaseHistoryResponse(BaseModel):
    purchases: List[PurchaseItem]
    stats: PurchaseStats


class MonthlyAnalytics(BaseModel):
    month: str  # "YYYY-MM"
    revenue: float
    licenses: int


class ProjectAnalyticsResponse(BaseModel):
    """Sales and traffic figures for one of the caller's projects."""

    project_id: str
    total_views: int
    total_downloads: int
    total_stars: int
    total_revenue: float
    total_licenses: int
    conversion_rate: float
    average_rating: Optional[float] = None
    recent_licenses: List[LicenseResponse]
    monthly_data: List[MonthlyAnalytics]

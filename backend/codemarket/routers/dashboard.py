"""Dashboard router: seller statistics, purchase history and project analytics."""
import logging
from datetime import datetime, timedelta
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc

from codemarket.database import get_db
from codemarket.models.user import User
from codemarket.models.license import License
from codemarket.models.project import Project
from codemarket.models.review import Review
from codemarket.schemas.dashboard import (
    ActivityItem, DashboardResponse, MonthlyAnalytics, ProjectAnalyticsResponse,
    PurchaseHistoryResponse, PurchaseItem, PurchaseStats, PurchasedProject, SellerStats,
)
from codemarket.schemas.licenses import LicenseResponse
from codemarket.schemas.projects import ProjectResponse
from codemarket.auth.dependencies import get_current_active_user
from codemarket.services.projects import seller_price

logger = logging.getLogger(__name__)

router = APIRouter()

ANALYTICS_MONTHS = 6


def _revenue(license_obj: License, project: Project) -> Decimal:
    """Author's share of one sale."""
    return seller_price(license_obj.amount or 0, project.marketplace_fee_pct or 0)


def _month_key(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def _recent_months(now: datetime, count: int = ANALYTICS_MONTHS) -> list[str]:
    """Month keys ending with the current one, oldest first."""
    keys = []
    year, month = now.year, now.month
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


@router.get("/api/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Dashboard for the caller.

    - Published projects (latest 10) and drafts (latest 5)
    - Active licenses the caller bought (latest 10)
    - Seller statistics; revenue is the author's share of completed sales
    - Recent sales as an activity feed
    """
    result = await db.execute(
        select(Project)
        .where(
            Project.author_id == current_user.uuid,
            Project.status == "published",
            Project.is_active == True,  # noqa: E712
        )
        .order_by(desc(Project.created_at))
    )
    published = result.scalars().all()

    result = await db.execute(
        select(Project)
        .where(Project.author_id == current_user.uuid, Project.status == "draft")
        .order_by(desc(Project.updated_at))
        .limit(5)
    )
    drafts = result.scalars().all()

    result = await db.execute(
        select(License)
        .where(License.licensee_id == current_user.uuid, License.is_active == True)  # noqa: E712
        .order_by(desc(License.created_at))
        .limit(10)
    )
    purchased = result.scalars().all()

    result = await db.execute(
        select(License, Project, User.username)
        .join(Project, License.project_id == Project.uuid)
        .join(User, License.licensee_id == User.uuid)
        .where(
            Project.author_id == current_user.uuid,
            Project.status == "published",
            Project.is_active == True,  # noqa: E712
            License.payment_status == "completed",
        )
        .order_by(desc(License.created_at))
    )
    sales = result.all()

    month_ago = datetime.utcnow() - timedelta(days=30)
    stats = SellerStats(
        total_projects=len(published),
        total_views=sum(p.views for p in published),
        total_downloads=sum(p.downloads for p in published),
        total_stars=sum(p.stars for p in published),
        total_revenue=float(sum((_revenue(lic, proj) for lic, proj, _ in sales), Decimal("0"))),
        monthly_revenue=float(sum(
            (_revenue(lic, proj) for lic, proj, _ in sales if lic.created_at >= month_ago),
            Decimal("0"),
        )),
        paid_sales=sum(1 for lic, _, _ in sales if (lic.amount or 0) > 0),
        free_grants=sum(1 for lic, _, _ in sales if not lic.amount),
    )

    activity = [
        ActivityItem(
            type="purchase",
            message=f"{username} purchased {proj.title}",
            date=lic.created_at,
            revenue=float(_revenue(lic, proj)),
        )
        for lic, proj, username in sales[:5]
    ]

    return DashboardResponse(
        published_projects=[ProjectResponse.from_project(p) for p in published[:10]],
        draft_projects=[ProjectResponse.from_project(p) for p in drafts],
        purchased_licenses=[LicenseResponse.model_validate(lic) for lic in purchased],
        seller_stats=stats,
        recent_activity=activity,
    )


@router.get("/api/dashboard/purchases", response_model=PurchaseHistoryResponse)
async def get_purchase_history(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """The caller's active licenses with spend totals and a per-category count."""
    result = await db.execute(
        select(License, Project)
        .join(Project, License.project_id == Project.uuid)
        .where(License.licensee_id == current_user.uuid, License.is_active == True)  # noqa: E712
        .order_by(desc(License.created_at))
    )
    rows = result.all()

    categories: dict[str, int] = {}
    for _, project in rows:
        categories[project.category] = categories.get(project.category, 0) + 1

    return PurchaseHistoryResponse(
        purchases=[
            PurchaseItem(
                license=LicenseResponse.model_validate(lic),
                project=PurchasedProject.model_validate(project),
            )
            for lic, project in rows
        ],
        stats=PurchaseStats(
            total_purchases=len(rows),
            total_spent=float(sum((Decimal(lic.amount or 0) for lic, _ in rows), Decimal("0"))),
            categories_count=categories,
        ),
    )


@router.get("/api/dashboard/project/{project_id}/analytics", response_model=ProjectAnalyticsResponse)
async def get_project_analytics(
    project_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Sales, conversion and rating figures for one project (author only)."""
    result = await db.execute(select(Project).where(Project.uuid == project_id))
    project = result.scalar_one_or_none()

    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )

    if project.author_id != current_user.uuid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view analytics for this project"
        )

    result = await db.execute(
        select(License)
        .where(License.project_id == project.uuid, License.payment_status == "completed")
        .order_by(desc(License.created_at))
    )
    licenses = result.scalars().all()

    avg_result = await db.execute(
        select(func.avg(Review.rating)).where(Review.project_id == project.uuid)
    )
    avg_rating = avg_result.scalar()

    months = _recent_months(datetime.utcnow())
    revenue_by_month = {key: Decimal("0") for key in months}
    count_by_month = {key: 0 for key in months}
    for lic in licenses:
        key = _month_key(lic.created_at)
        if key in revenue_by_month:
            revenue_by_month[key] += _revenue(lic, project)
            count_by_month[key] += 1

    conversion = round(len(licenses) / project.views * 100, 2) if project.views else 0.0

    return ProjectAnalyticsResponse(
        project_id=project.uuid,
        total_views=project.views,
        total_downloads=project.downloads,
        total_stars=project.stars,
        total_revenue=float(sum((_revenue(lic, project) for lic in licenses), Decimal("0"))),
        total_licenses=len(licenses),
        conversion_rate=conversion,
        average_rating=round(float(avg_rating), 1) if avg_rating is not None else None,
        recent_licenses=[LicenseResponse.model_validate(lic) for lic in licenses[:10]],
        monthly_data=[
            MonthlyAnalytics(month=key, revenue=float(revenue_by_month[key]), licenses=count_by_month[key])
            for key in months
        ],
    )

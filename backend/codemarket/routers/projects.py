"""Projects router for marketplace listings."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, desc, asc

from codemarket.database import get_db
from codemarket.models.user import User
from codemarket.models.project import Project
from codemarket.models.review import Review
from codemarket.schemas.projects import (
    ProjectCreate, ProjectUpdate, ProjectResponse, ProjectListResponse,
    ProjectDetailResponse, CapabilityAccess,
)
from codemarket.schemas.licenses import LicenseOption, LicenseOptionsResponse, LicenseResponse
from codemarket.schemas.reviews import ReviewResponse
from codemarket.auth.dependencies import get_current_active_user, get_optional_user
from codemarket.services.access import access_summary
from codemarket.services.licensing import LicensePolicy, get_license_policy, resolve_license
from codemarket.services.projects import (
    apply_listing, get_active_license, get_visible_project, increment_views, validate_listing,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_COLUMNS = {
    "created_at": Project.created_at,
    "title": Project.title,
    "views": Project.views,
    "downloads": Project.downloads,
}


async def _get_own_project(db: AsyncSession, project_id: str, user: User) -> Project:
    project = await get_visible_project(db, project_id, user)
    if project.author_id != user.uuid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to modify this project"
        )
    return project


@router.post("/api/projects", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a project listing.

    - Validates repository URLs against the offer type
    - Derives the seller price from the marketplace fee
    """
    project = Project(author_id=current_user.uuid)
    apply_listing(project, project_data.model_dump())
    validate_listing(project)

    db.add(project)
    await db.commit()
    await db.refresh(project)

    logger.info(f"Project {project.uuid} created by {current_user.uuid}")
    return ProjectResponse.from_project(project)


@router.get("/api/projects", response_model=ProjectListResponse)
async def list_projects(
    category: Optional[str] = None,
    search: Optional[str] = None,
    author: Optional[str] = None,
    tag: Optional[str] = None,
    sort_by: str = Query("created_at", pattern="^(created_at|title|views|downloads)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List projects (paginated).

    Only published, active projects are listed, except that authors filtering
    on themselves also see their drafts.
    """
    query = select(Project).where(Project.is_active == True)  # noqa: E712

    if author and current_user and author == current_user.uuid:
        query = query.where(Project.author_id == author)
    else:
        query = query.where(Project.status == "published")
        if author:
            query = query.where(Project.author_id == author)

    if category:
        query = query.where(Project.category == category)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Project.title.ilike(pattern), Project.description.ilike(pattern)))

    projects = None
    if tag:
        # Tags are a JSON list; filter in Python so the query stays portable
        result = await db.execute(query)
        projects = [p for p in result.scalars().all() if tag.lower() in (p.tags or [])]

    order = desc if sort_order == "desc" else asc
    if projects is None:
        count_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar()

        result = await db.execute(
            query.order_by(order(SORT_COLUMNS[sort_by])).offset(skip).limit(limit)
        )
        projects = result.scalars().all()
    else:
        total = len(projects)
        projects.sort(key=lambda p: getattr(p, sort_by), reverse=sort_order == "desc")
        projects = projects[skip:skip + limit]

    return ProjectListResponse(
        items=[ProjectResponse.from_project(p, include_paid_url=False) for p in projects],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/api/projects/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project_id: str,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Project detail.

    - Hidden (draft or deleted) projects are 404 for everyone but the author
    - Increments the view counter
    - Includes the latest reviews, the average rating, the caller's license
      and the per-capability access decisions
    """
    project = await get_visible_project(db, project_id, current_user)

    await increment_views(db, project.uuid)
    await db.commit()
    await db.refresh(project)

    result = await db.execute(
        select(Review)
        .where(Review.project_id == project.uuid)
        .order_by(desc(Review.created_at))
        .limit(10)
    )
    reviews = result.scalars().all()

    avg_result = await db.execute(
        select(func.avg(Review.rating)).where(Review.project_id == project.uuid)
    )
    avg_rating = avg_result.scalar()

    license_obj = await get_active_license(db, project.uuid, current_user)
    decisions = access_summary(project, current_user, license_obj)

    return ProjectDetailResponse(
        project=ProjectResponse.from_project(project, include_paid_url=decisions["download_code"]),
        reviews=[ReviewResponse.model_validate(r) for r in reviews],
        average_rating=round(float(avg_rating), 1) if avg_rating is not None else None,
        user_license=LicenseResponse.model_validate(license_obj) if license_obj else None,
        can_access=CapabilityAccess(**decisions),
    )


@router.get("/api/projects/{project_id}/license-options", response_model=LicenseOptionsResponse)
async def get_license_options(
    project_id: str,
    current_user: Optional[User] = Depends(get_optional_user),
    policy: LicensePolicy = Depends(get_license_policy),
    db: AsyncSession = Depends(get_db)
):
    """Every license tier priced for this project, cheapest first."""
    project = await get_visible_project(db, project_id, current_user)

    options = []
    for name in policy.tier_names:
        resolved = resolve_license(name, project, policy)
        options.append(LicenseOption(
            license_type=name,
            amount=float(resolved.amount),
            currency=resolved.currency,
            permissions=resolved.permissions,
            duration_days=policy.tier(name).duration_days,
        ))

    return LicenseOptionsResponse(project_id=project.uuid, options=options)


@router.put("/api/projects/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    project_data: ProjectUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Update a project (author only)."""
    project = await _get_own_project(db, project_id, current_user)

    # Nested groups that are sent replace the stored group as a whole
    updates = {
        field: value.model_dump() if hasattr(value, "model_dump") else value
        for field, value in project_data
        if field in project_data.model_fields_set
    }
    apply_listing(project, updates)
    validate_listing(project)

    await db.commit()
    await db.refresh(project)
    return ProjectResponse.from_project(project)


@router.delete("/api/projects/{project_id}")
async def delete_project(
    project_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Soft-delete a project (author only); existing licenses are kept."""
    project = await _get_own_project(db, project_id, current_user)

    project.is_active = False
    await db.commit()

    logger.info(f"Project {project.uuid} deleted by {current_user.uuid}")
    return {"message": "Project deleted successfully"}

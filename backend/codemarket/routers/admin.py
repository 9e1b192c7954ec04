"""Admin endpoints for platform statistics and moderation."""
import logging

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc, or_

from codemarket.database import get_db
from codemarket.models.user import User
from codemarket.models.project import Project
from codemarket.models.license import License
from codemarket.models.review import Review
from codemarket.schemas.admin import (
    AdminProjectUpdate, AdminStatsResponse, AdminUserItem, AdminUserListResponse,
    AdminUserUpdate, PlatformStats,
)
from codemarket.schemas.projects import ProjectListResponse, ProjectResponse
from codemarket.auth.dependencies import admin_required

logger = logging.getLogger(__name__)

router = APIRouter()


async def _count(db: AsyncSession, model) -> int:
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar()


@router.get("/api/admin/stats", response_model=AdminStatsResponse)
async def get_platform_stats(
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Platform totals for the admin overview.

    - Row counts for users, projects, licenses and reviews
    - Total earnings over completed license payments
    - The ten newest users and projects
    """
    earnings_result = await db.execute(
        select(func.coalesce(func.sum(License.amount), 0)).where(License.payment_status == "completed")
    )
    total_earnings = earnings_result.scalar()

    users_result = await db.execute(select(User).order_by(desc(User.created_at)).limit(10))
    projects_result = await db.execute(select(Project).order_by(desc(Project.created_at)).limit(10))

    return AdminStatsResponse(
        stats=PlatformStats(
            total_users=await _count(db, User),
            total_projects=await _count(db, Project),
            total_licenses=await _count(db, License),
            total_reviews=await _count(db, Review),
            total_earnings=float(total_earnings or 0),
        ),
        recent_users=[AdminUserItem.model_validate(u) for u in users_result.scalars().all()],
        recent_projects=[ProjectResponse.from_project(p) for p in projects_result.scalars().all()],
    )


@router.get("/api/admin/users", response_model=AdminUserListResponse)
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    search: str = Query("", min_length=0),
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    List all users with pagination and search.

    - Paginated with skip/limit
    - Search by username or email (case-insensitive)
    """
    query = select(User)
    if search:
        query = query.where(or_(User.username.ilike(f"%{search}%"), User.email.ilike(f"%{search}%")))

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar()

    result = await db.execute(query.order_by(desc(User.created_at)).offset(skip).limit(limit))
    users = result.scalars().all()

    return AdminUserListResponse(
        items=[AdminUserItem.model_validate(u) for u in users],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.put("/api/admin/users/{user_id}", response_model=AdminUserItem)
async def update_user(
    user_id: str,
    user_data: AdminUserUpdate,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Moderate a user: verification, role and account status.

    Suspended users keep their data but can no longer authenticate.
    Admins cannot suspend or demote themselves.
    """
    result = await db.execute(select(User).where(User.uuid == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    updates = user_data.model_dump(exclude_unset=True, exclude_none=True)
    if user.uuid == current_user.uuid and (
        updates.get("status", "active") != "active" or updates.get("user_role", "admin") != "admin"
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admins cannot suspend or demote themselves"
        )

    for field, value in updates.items():
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)

    logger.info(f"Admin {current_user.uuid} updated user {user.uuid}: {updates}")
    return AdminUserItem.model_validate(user)


@router.get("/api/admin/projects", response_model=ProjectListResponse)
async def list_all_projects(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    search: str = Query("", min_length=0),
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Every project, drafts and deactivated ones included."""
    query = select(Project)
    if search:
        query = query.where(or_(Project.title.ilike(f"%{search}%"), Project.description.ilike(f"%{search}%")))

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar()

    result = await db.execute(query.order_by(desc(Project.created_at)).offset(skip).limit(limit))
    projects = result.scalars().all()

    return ProjectListResponse(
        items=[ProjectResponse.from_project(p) for p in projects],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.put("/api/admin/projects/{project_id}", response_model=ProjectResponse)
async def moderate_project(
    project_id: str,
    project_data: AdminProjectUpdate,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Deactivate, restore or feature a project."""
    result = await db.execute(select(Project).where(Project.uuid == project_id))
    project = result.scalar_one_or_none()

    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )

    updates = project_data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in updates.items():
        setattr(project, field, value)

    await db.commit()
    await db.refresh(project)

    logger.info(f"Admin {current_user.uuid} updated project {project.uuid}: {updates}")
    return ProjectResponse.from_project(project)

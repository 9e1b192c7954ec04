"""Reviews router for project ratings and comments."""
import logging

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc, asc, func
from sqlalchemy.exc import IntegrityError

from codemarket.database import get_db
from codemarket.models.license import License
from codemarket.models.review import Review
from codemarket.models.user import User
from codemarket.auth.dependencies import get_current_active_user
from codemarket.schemas.reviews import (
    ReviewCreate, ReviewUpdate, ReviewResponse, ReviewListResponse,
    ProjectReviewsResponse, ReviewStats,
)
from codemarket.services.projects import get_visible_project

logger = logging.getLogger(__name__)

router = APIRouter()


async def _project_review_stats(db: AsyncSession, project_id: str) -> ReviewStats:
    """
    Average, count and 1-5 distribution of a project's ratings.

    Args:
        db: Database session
        project_id: Project UUID
    """
    result = await db.execute(
        select(Review.rating, func.count(Review.uuid))
        .where(Review.project_id == project_id)
        .group_by(Review.rating)
    )
    distribution = {score: 0 for score in range(1, 6)}
    for rating, count in result.all():
        distribution[rating] = count

    total = sum(distribution.values())
    average = sum(score * count for score, count in distribution.items()) / total if total else 0.0

    return ReviewStats(
        average_rating=round(average, 1),
        total_reviews=total,
        rating_distribution=distribution,
    )


async def _get_own_review(db: AsyncSession, review_id: str, user: User) -> Review:
    result = await db.execute(select(Review).where(Review.uuid == review_id))
    review = result.scalar_one_or_none()

    if not review:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Review not found"
        )

    if review.reviewer_id != user.uuid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to modify this review"
        )
    return review


@router.get("/api/reviews", response_model=ReviewListResponse)
async def get_my_reviews(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Reviews written by the caller (paginated)."""
    count_result = await db.execute(
        select(func.count(Review.uuid)).where(Review.reviewer_id == current_user.uuid)
    )
    total = count_result.scalar()

    result = await db.execute(
        select(Review)
        .where(Review.reviewer_id == current_user.uuid)
        .order_by(desc(Review.created_at))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    reviews = result.scalars().all()

    return ReviewListResponse(
        reviews=[ReviewResponse.model_validate(r) for r in reviews],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/api/reviews", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    review_data: ReviewCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Review a project (rating: 1-5, comment: optional text).
    One review per user per project; authors cannot review their own projects.
    """
    project = await get_visible_project(db, review_data.project_id, current_user)

    if project.author_id == current_user.uuid:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You cannot review your own project"
        )

    result = await db.execute(
        select(Review.uuid).where(
            Review.reviewer_id == current_user.uuid,
            Review.project_id == project.uuid,
        )
    )
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already reviewed this project"
        )

    # Verified purchase: a paid-for (or granted) license exists at review time
    result = await db.execute(
        select(License.uuid).where(
            License.project_id == project.uuid,
            License.licensee_id == current_user.uuid,
            License.payment_status == "completed",
        )
    )
    is_verified = result.scalars().first() is not None

    review = Review(
        rating=review_data.rating,
        comment=review_data.comment,
        is_verified_purchase=is_verified,
        reviewer_id=current_user.uuid,
        project_id=project.uuid,
    )
    db.add(review)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already reviewed this project"
        )
    await db.refresh(review)

    logger.info(f"Review {review.uuid} created on project {review.project_id}")
    return ReviewResponse.model_validate(review)


@router.get("/api/reviews/project/{project_id}", response_model=ProjectReviewsResponse)
async def get_project_reviews(
    project_id: str,
    sort_by: str = Query("created_at", pattern="^(created_at|rating)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Get reviews for a project (paginated) with rating statistics."""
    project = await get_visible_project(db, project_id, None)

    stats = await _project_review_stats(db, project.uuid)

    order = desc if sort_order == "desc" else asc
    column = Review.rating if sort_by == "rating" else Review.created_at
    result = await db.execute(
        select(Review)
        .where(Review.project_id == project.uuid)
        .order_by(order(column), desc(Review.created_at))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    reviews = result.scalars().all()

    return ProjectReviewsResponse(
        reviews=[ReviewResponse.model_validate(r) for r in reviews],
        total=stats.total_reviews,
        page=page,
        page_size=page_size,
        stats=stats,
    )


@router.put("/api/reviews/{review_id}", response_model=ReviewResponse)
async def update_review(
    review_id: str,
    review_data: ReviewUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Update a review (reviewer only)."""
    review = await _get_own_review(db, review_id, current_user)

    if review_data.rating is not None:
        review.rating = review_data.rating
    if review_data.comment is not None:
        review.comment = review_data.comment

    await db.commit()
    await db.refresh(review)
    return ReviewResponse.model_validate(review)


@router.delete("/api/reviews/{review_id}")
async def delete_review(
    review_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a review (reviewer only)."""
    review = await _get_own_review(db, review_id, current_user)

    await db.delete(review)
    await db.commit()
    return {"message": "Review deleted successfully"}

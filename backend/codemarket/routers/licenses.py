"""Licenses router for purchasing, confirming and managing project licenses."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc

from codemarket.database import get_db
from codemarket.models.user import User
from codemarket.models.license import License, PAYMENT_STATUSES
from codemarket.models.project import Project
from codemarket.schemas.licenses import (
    LicensePurchaseRequest, LicensePurchaseResponse, PaymentConfirmRequest,
    PaymentConfirmResponse, LicenseResponse, LicenseListResponse,
)
from codemarket.auth.dependencies import get_current_active_user, admin_required
from codemarket.services.licensing import LicensePolicy, get_license_policy
from codemarket.services.payment_provider import StripePaymentProvider, get_payment_provider
from codemarket.services.purchases import (
    purchase_license as start_purchase,
    confirm_license_payment,
    cancel_pending_license,
    refund_license as refund_purchase,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_license(db: AsyncSession, license_id: str) -> License:
    result = await db.execute(select(License).where(License.uuid == license_id))
    license_obj = result.scalar_one_or_none()

    if not license_obj:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="License not found"
        )
    return license_obj


async def _paginate(db: AsyncSession, query, skip: int, limit: int) -> LicenseListResponse:
    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar()

    result = await db.execute(query.order_by(desc(License.created_at)).offset(skip).limit(limit))
    licenses = result.scalars().all()

    return LicenseListResponse(
        items=[LicenseResponse.model_validate(lic) for lic in licenses],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("/api/licenses/purchase", response_model=LicensePurchaseResponse, status_code=status.HTTP_201_CREATED)
async def purchase_license(
    purchase_data: LicensePurchaseRequest,
    current_user: User = Depends(get_current_active_user),
    provider: StripePaymentProvider = Depends(get_payment_provider),
    policy: LicensePolicy = Depends(get_license_policy),
    db: AsyncSession = Depends(get_db)
):
    """
    Purchase a license tier for a project.

    - Rejects self-purchases and buyers with a live license (409)
    - Free tiers are granted immediately
    - Paid tiers return a pending license and a Stripe client secret
    """
    result = await start_purchase(
        db,
        provider,
        policy,
        buyer=current_user,
        project_id=purchase_data.project_id,
        license_type=purchase_data.license_type,
    )

    return LicensePurchaseResponse(
        message=result.message,
        license=LicenseResponse.model_validate(result.license),
        client_secret=result.client_secret,
    )


@router.post("/api/licenses/confirm-payment", response_model=PaymentConfirmResponse)
async def confirm_payment(
    confirm_data: PaymentConfirmRequest,
    current_user: User = Depends(get_current_active_user),
    provider: StripePaymentProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db)
):
    """
    Confirm a license payment after the client completed it with Stripe.

    The payment intent is re-checked with Stripe; confirming twice is harmless.
    """
    license_obj = await confirm_license_payment(
        db,
        provider,
        confirm_data.payment_intent_id,
        licensee_id=current_user.uuid,
    )

    return PaymentConfirmResponse(
        message="Payment confirmed and license activated",
        license=LicenseResponse.model_validate(license_obj),
    )


@router.get("/api/licenses/my-licenses", response_model=LicenseListResponse)
async def get_my_licenses(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the caller's active licenses (paginated)."""
    query = select(License).where(
        License.licensee_id == current_user.uuid,
        License.is_active == True,  # noqa: E712
    )
    return await _paginate(db, query, skip, limit)


@router.get("/api/licenses/project/{project_id}", response_model=LicenseListResponse)
async def get_project_licenses(
    project_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Completed licenses sold for a project (author only)."""
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
            detail="Not authorized to view licenses for this project"
        )

    query = select(License).where(
        License.project_id == project_id,
        License.payment_status == "completed",
    )
    return await _paginate(db, query, skip, limit)


@router.delete("/api/licenses/{license_id}", response_model=LicenseResponse)
async def cancel_license(
    license_id: str,
    current_user: User = Depends(get_current_active_user),
    provider: StripePaymentProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db)
):
    """Cancel a pending purchase so it can be started again."""
    license_obj = await _get_license(db, license_id)

    if license_obj.licensee_id != current_user.uuid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to cancel this license"
        )

    license_obj = await cancel_pending_license(db, provider, license_obj)
    logger.info(f"License {license_obj.uuid} purchase cancelled by {current_user.uuid}")
    return LicenseResponse.model_validate(license_obj)


@router.post("/api/licenses/{license_id}/refund", response_model=LicenseResponse)
async def refund_license(
    license_id: str,
    current_user: User = Depends(get_current_active_user),
    provider: StripePaymentProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db)
):
    """Refund a completed license (project author or admin)."""
    license_obj = await _get_license(db, license_id)

    result = await db.execute(select(Project.author_id).where(Project.uuid == license_obj.project_id))
    author_id = result.scalar_one_or_none()

    if current_user.uuid != author_id and current_user.user_role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to refund this license"
        )

    license_obj = await refund_purchase(db, provider, license_obj)
    return LicenseResponse.model_validate(license_obj)


@router.get("/api/admin/licenses", response_model=LicenseListResponse)
async def admin_list_licenses(
    payment_status: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """List all licenses, optionally by payment status (admin only)."""
    query = select(License)
    if payment_status:
        if payment_status not in PAYMENT_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid payment status '{payment_status}'"
            )
        query = query.where(License.payment_status == payment_status)
    return await _paginate(db, query, skip, limit)

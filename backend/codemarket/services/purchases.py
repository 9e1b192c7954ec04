"""License purchase lifecycle: purchase, confirmation, failure and refund.

Payment states move ``pending -> completed | failed`` and
``completed -> refunded``.  Every transition is a compare-and-set ``UPDATE``
keyed on the current state, so repeated confirmations (client retries, webhook
redelivery) change at most one row and bump the download counter once.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from codemarket.models.license import License
from codemarket.models.project import Project
from codemarket.models.user import User
from codemarket.services.licensing import LicensePolicy, UnknownLicenseType, resolve_license
from codemarket.services.payment_provider import PaymentProviderError, StripePaymentProvider
from codemarket.services.projects import adjust_downloads, get_visible_project

logger = logging.getLogger(__name__)


@dataclass
class PurchaseResult:
    license: License
    client_secret: Optional[str] = None

    @property
    def message(self) -> str:
        if self.license.payment_status == "pending":
            return "Payment required to complete license"
        return "License granted successfully"


def _provider_failure(e: PaymentProviderError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Payment provider error: {e}"
    )


async def expire_lapsed_licenses(db: AsyncSession, project_id: str, licensee_id: str) -> int:
    """Deactivate grants whose term has ended. Returns how many were closed."""
    result = await db.execute(
        update(License)
        .where(
            License.project_id == project_id,
            License.licensee_id == licensee_id,
            License.is_active == True,  # noqa: E712
            License.expires_at.is_not(None),
            License.expires_at <= datetime.utcnow(),
        )
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def _check_purchase_conflicts(db: AsyncSession, project: Project, buyer: User) -> None:
    """Reject self-purchases and buyers who already hold a live license."""
    if project.author_id == buyer.uuid:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot purchase a license for your own project"
        )

    # An expired grant no longer counts as live, so the buyer may renew
    if await expire_lapsed_licenses(db, project.uuid, buyer.uuid):
        await db.commit()
        logger.info(f"Closed expired license of {buyer.uuid} on project {project.uuid}")

    result = await db.execute(
        select(License).where(
            License.project_id == project.uuid,
            License.licensee_id == buyer.uuid,
            or_(License.is_active == True, License.payment_status == "pending"),  # noqa: E712
        )
    )
    existing = result.scalars().first()

    if existing and existing.is_active:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You already have an active license for this project"
        )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A purchase for this project is already pending"
        )


async def _ensure_customer(
    db: AsyncSession,
    provider: StripePaymentProvider,
    buyer: User,
) -> str:
    """Create the buyer's provider customer on first paid purchase."""
    if buyer.stripe_customer_id:
        return buyer.stripe_customer_id

    try:
        customer_id = await provider.create_customer(buyer.email, metadata={"user_id": buyer.uuid})
    except PaymentProviderError as e:
        raise _provider_failure(e)

    buyer.stripe_customer_id = customer_id
    await db.commit()
    return customer_id


async def purchase_license(
    db: AsyncSession,
    provider: StripePaymentProvider,
    policy: LicensePolicy,
    buyer: User,
    project_id: str,
    license_type: str,
) -> PurchaseResult:
    """
    Start a license purchase.

    Free tiers are granted immediately.  Paid tiers insert a pending license
    first, so the storage-level uniqueness check runs before any payment
    intent exists, then attach the provider intent.
    """
    project = await get_visible_project(db, project_id, buyer)
    if not project.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    await _check_purchase_conflicts(db, project, buyer)

    try:
        resolved = resolve_license(license_type, project, policy)
    except UnknownLicenseType:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid license type '{license_type}'"
        )

    customer_id = None
    if resolved.requires_payment:
        customer_id = await _ensure_customer(db, provider, buyer)

    license_obj = License(
        project_id=project.uuid,
        licensee_id=buyer.uuid,
        license_type=resolved.license_type,
        amount=resolved.amount,
        currency=resolved.currency,
        payment_status="pending" if resolved.requires_payment else "completed",
        is_active=not resolved.requires_payment,
        expires_at=resolved.expires_at,
        **resolved.permissions,
    )
    db.add(license_obj)

    buyer_id = buyer.uuid
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Concurrent purchase rejected for project {project_id} by {buyer_id}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You already have an active license for this project"
        )

    if not resolved.requires_payment:
        await adjust_downloads(db, project.uuid, 1)
        await db.commit()
        await db.refresh(license_obj)
        logger.info(f"Granted {resolved.license_type} license {license_obj.uuid} on project {project.uuid}")
        return PurchaseResult(license=license_obj)

    try:
        intent = await provider.create_payment_intent(
            amount_cents=resolved.amount_cents,
            currency=resolved.currency,
            customer_id=customer_id,
            metadata={
                "license_id": license_obj.uuid,
                "project_id": project.uuid,
                "licensee_id": buyer.uuid,
                "license_type": resolved.license_type,
            },
            idempotency_key=f"license-{license_obj.uuid}",
        )
    except PaymentProviderError as e:
        await db.rollback()
        raise _provider_failure(e)

    license_obj.payment_intent_id = intent.id
    await db.commit()
    await db.refresh(license_obj)

    logger.info(
        f"Pending {resolved.license_type} license {license_obj.uuid} on project {project.uuid} "
        f"awaiting payment intent {intent.id}"
    )
    return PurchaseResult(license=license_obj, client_secret=intent.client_secret)


async def _get_license_by_intent(
    db: AsyncSession,
    payment_intent_id: str,
    licensee_id: Optional[str] = None,
) -> License:
    query = select(License).where(License.payment_intent_id == payment_intent_id)
    if licensee_id is not None:
        query = query.where(License.licensee_id == licensee_id)
    result = await db.execute(query)
    license_obj = result.scalar_one_or_none()

    if not license_obj:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="License not found"
        )
    return license_obj


async def _transition(
    db: AsyncSession,
    license_id: str,
    from_statuses: tuple[str, ...],
    to_status: str,
    is_active: bool,
) -> bool:
    """Compare-and-set the payment status; True when this call made the change."""
    result = await db.execute(
        update(License)
        .where(License.uuid == license_id, License.payment_status.in_(from_statuses))
        .values(payment_status=to_status, is_active=is_active)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def confirm_license_payment(
    db: AsyncSession,
    provider: StripePaymentProvider,
    payment_intent_id: str,
    licensee_id: Optional[str] = None,
) -> License:
    """
    Activate the license attached to a payment intent once the provider
    reports it succeeded.  Safe to call any number of times.
    """
    license_obj = await _get_license_by_intent(db, payment_intent_id, licensee_id)

    if license_obj.payment_status == "completed":
        return license_obj
    if license_obj.payment_status == "refunded":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="License payment has been refunded"
        )

    try:
        intent = await provider.retrieve_payment_intent(payment_intent_id)
    except PaymentProviderError as e:
        raise _provider_failure(e)

    if intent.status == "canceled":
        if await _transition(db, license_obj.uuid, ("pending",), "failed", False):
            await db.commit()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment not completed"
        )

    if intent.status != "succeeded":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment not completed"
        )

    try:
        activated = await _transition(db, license_obj.uuid, ("pending", "failed"), "completed", True)
        if activated:
            await adjust_downloads(db, license_obj.project_id, 1)
        await db.commit()
    except IntegrityError:
        # Another grant for the same project and licensee went live first
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You already have an active license for this project"
        )

    await db.refresh(license_obj)
    if activated:
        logger.info(f"Activated license {license_obj.uuid} via payment intent {payment_intent_id}")
    return license_obj


async def mark_payment_failed(db: AsyncSession, payment_intent_id: str) -> bool:
    """Fail the pending license attached to an intent. Returns True if it changed."""
    result = await db.execute(select(License).where(License.payment_intent_id == payment_intent_id))
    license_obj = result.scalar_one_or_none()
    if not license_obj:
        return False

    changed = await _transition(db, license_obj.uuid, ("pending",), "failed", False)
    await db.commit()
    if changed:
        logger.info(f"License {license_obj.uuid} marked failed for payment intent {payment_intent_id}")
    return changed


async def _cancel_intent(provider: StripePaymentProvider, intent_id: str) -> str:
    """
    Cancel an intent unless it already settled; returns its final status.

    Stripe refuses to cancel a succeeded or canceled intent, so the status is
    read first and read again if the cancel call is rejected.
    """
    try:
        intent = await provider.retrieve_payment_intent(intent_id)
        if intent.status in ("succeeded", "canceled"):
            return intent.status

        try:
            intent = await provider.cancel_payment_intent(intent_id)
        except PaymentProviderError:
            # The intent may have settled between the two calls
            intent = await provider.retrieve_payment_intent(intent_id)
            if intent.status not in ("succeeded", "canceled"):
                raise
        return intent.status
    except PaymentProviderError as e:
        raise _provider_failure(e)


async def cancel_pending_license(
    db: AsyncSession,
    provider: StripePaymentProvider,
    license_obj: License,
) -> License:
    """Abandon a pending purchase so the buyer can start over."""
    if license_obj.payment_status != "pending":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot cancel a license with payment status '{license_obj.payment_status}'"
        )

    if license_obj.payment_intent_id:
        intent_status = await _cancel_intent(provider, license_obj.payment_intent_id)
        if intent_status == "succeeded":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Payment already succeeded; confirm the payment instead"
            )

    await _transition(db, license_obj.uuid, ("pending",), "failed", False)
    await db.commit()
    await db.refresh(license_obj)
    return license_obj


async def apply_refund(db: AsyncSession, license_obj: License) -> bool:
    """Move a completed license to refunded and take back its download."""
    changed = await _transition(db, license_obj.uuid, ("completed",), "refunded", False)
    if changed:
        await adjust_downloads(db, license_obj.project_id, -1)
    await db.commit()
    await db.refresh(license_obj)
    if changed:
        logger.info(f"License {license_obj.uuid} refunded")
    return changed


async def refund_license(
    db: AsyncSession,
    provider: StripePaymentProvider,
    license_obj: License,
) -> License:
    """Refund a paid license through the provider and deactivate it."""
    if license_obj.payment_status != "completed":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot refund a license with payment status '{license_obj.payment_status}'"
        )

    if license_obj.payment_intent_id:
        try:
            await provider.refund_payment_intent(license_obj.payment_intent_id)
        except PaymentProviderError as e:
            raise _provider_failure(e)

    await apply_refund(db, license_obj)
    return license_obj


async def refund_by_intent(db: AsyncSession, payment_intent_id: str) -> bool:
    """Record a refund the provider already processed (webhook path)."""
    result = await db.execute(select(License).where(License.payment_intent_id == payment_intent_id))
    license_obj = result.scalar_one_or_none()
    if not license_obj:
        return False
    return await apply_refund(db, license_obj)

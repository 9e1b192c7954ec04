"""Project lookups shared by the routers: visibility rules, listing checks and counters."""
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, update, case
from sqlalchemy.ext.asyncio import AsyncSession

from codemarket.config import settings
from codemarket.models.license import License
from codemarket.models.project import Project
from codemarket.models.user import User


def is_visible(project: Project, user: Optional[User]) -> bool:
    """
    Drafts and soft-deleted projects are only visible to their author.
    """
    if user is not None and project.author_id == user.uuid:
        return True
    return project.is_active and project.status == "published"


async def get_visible_project(
    db: AsyncSession,
    project_id: str,
    user: Optional[User],
) -> Project:
    """
    Fetch a project the caller is allowed to see.

    Raises 404 both when the project does not exist and when it is hidden,
    so hidden drafts do not leak their existence.
    """
    result = await db.execute(select(Project).where(Project.uuid == project_id))
    project = result.scalar_one_or_none()

    if not project or not is_visible(project, user):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )
    return project


async def get_active_license(
    db: AsyncSession,
    project_id: str,
    user: Optional[User],
) -> Optional[License]:
    """Return the caller's active license for a project, if any."""
    if user is None:
        return None
    result = await db.execute(
        select(License).where(
            License.project_id == project_id,
            License.licensee_id == user.uuid,
            License.is_active == True,  # noqa: E712
        )
    )
    return result.scalars().first()


async def increment_views(db: AsyncSession, project_id: str) -> None:
    await db.execute(
        update(Project)
        .where(Project.uuid == project_id)
        .values(views=Project.views + 1)
        .execution_options(synchronize_session=False)
    )


async def adjust_downloads(db: AsyncSession, project_id: str, delta: int) -> None:
    """Atomically move the download counter, never below zero."""
    new_value = Project.downloads + delta
    await db.execute(
        update(Project)
        .where(Project.uuid == project_id)
        .values(downloads=case((new_value < 0, 0), else_=new_value))
        .execution_options(synchronize_session=False)
    )


GITHUB_REPO_URL = re.compile(
    r"^https?://(www\.)?github\.com/[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?/[A-Za-z0-9._-]+/?$"
)


def is_github_repo_url(url: str) -> bool:
    return bool(GITHUB_REPO_URL.match(url or ""))


def validate_listing(project: Project) -> None:
    """
    Check the offer against the repository links it needs.

    - free offers need a free repository URL
    - paid offers need a paid repository URL and a price
    - freemium offers need both URLs and a price
    """
    errors = []
    offer = project.license_type
    free_url = project.repository_free_url or ""
    paid_url = project.repository_paid_url or ""

    if offer in ("free", "freemium") and not free_url:
        errors.append(f"{offer} projects require a free repository URL")
    if offer in ("paid", "freemium") and not paid_url:
        errors.append(f"{offer} projects require a paid repository URL")
    if offer in ("paid", "freemium") and (project.price or 0) <= 0:
        errors.append(f"{offer} projects require a price greater than 0")

    for url in (free_url, paid_url):
        if url and not is_github_repo_url(url):
            errors.append(f"Invalid GitHub repository URL: {url}")

    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="; ".join(errors)
        )


def seller_price(price: Decimal, fee_pct: Decimal) -> Decimal:
    """Author's share after the marketplace fee, rounded to cents."""
    share = Decimal(price) * (Decimal(100) - Decimal(fee_pct)) / Decimal(100)
    return share.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def apply_listing(project: Project, data: dict) -> None:
    """
    Copy a (possibly partial) create/update payload onto a Project row.

    Nested groups (license, access, repository, demo) map onto the flat
    columns; the seller price is re-derived whenever the offer changes.
    """
    for field in ("title", "description", "category", "tags", "tech_stack", "status"):
        if data.get(field) is not None:
            setattr(project, field, data[field])

    offer = data.get("license")
    if offer is not None:
        project.license_type = offer["type"]
        project.price = offer["price"]
        project.currency = offer["currency"]
        project.free_features = offer["free_features"]
        project.paid_features = offer["paid_features"]
        fee = offer.get("marketplace_fee_pct")
        if fee is None:
            fee = project.marketplace_fee_pct
        if fee is None:
            fee = Decimal(str(settings.MARKETPLACE_FEE_PCT))
        project.marketplace_fee_pct = fee
        project.seller_price = seller_price(project.price, fee)

    access = data.get("access")
    if access is not None:
        project.access_view_code = access["view_code"]
        project.access_run_app = access["run_app"]
        project.access_download_code = access["download_code"]

    repository = data.get("repository")
    if repository is not None:
        project.repository_free_url = repository["free_url"]
        project.repository_paid_url = repository["paid_url"]
        project.repository_branch = repository["branch"]
        project.repository_is_private = repository["is_private"]

    demo = data.get("demo")
    if demo is not None:
        project.demo_url = demo["url"]
        project.demo_screenshots = demo["screenshots"]

"""Project model for CodeMarket listings."""
from datetime import datetime
from decimal import Decimal
from uuid import uuid4
from sqlalchemy import String, Integer, Numeric, Boolean, DateTime, Text, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from codemarket.database import Base

CATEGORIES = ("web", "mobile", "desktop", "api", "library", "tool", "game", "other")
OFFER_TYPES = ("free", "paid", "freemium")
ACCESS_LEVELS = ("public", "licensed", "private")
PROJECT_STATUSES = ("draft", "published")


class Project(Base):
    """A software project listed on the marketplace."""

    __tablename__ = "projects"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Listing info
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    tech_stack: Mapped[list] = mapped_column(JSON, default=list)

    # Repository
    repository_free_url: Mapped[str] = mapped_column(String(255), default="")
    repository_paid_url: Mapped[str] = mapped_column(String(255), default="")
    repository_branch: Mapped[str] = mapped_column(String(100), default="main")
    repository_is_private: Mapped[bool] = mapped_column(Boolean, default=False)

    # Demo
    demo_url: Mapped[str] = mapped_column(String(255), default="")
    demo_screenshots: Mapped[list] = mapped_column(JSON, default=list)

    # Offer (the template licenses are priced from, not a grant)
    license_type: Mapped[str] = mapped_column(String(20), default="free")  # "free", "paid", "freemium"
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    seller_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    marketplace_fee_pct: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("20"))
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    free_features: Mapped[list] = mapped_column(JSON, default=list)
    paid_features: Mapped[list] = mapped_column(JSON, default=list)

    # Per-capability access policy
    access_view_code: Mapped[str] = mapped_column(String(20), default="public")
    access_run_app: Mapped[str] = mapped_column(String(20), default="public")
    access_download_code: Mapped[str] = mapped_column(String(20), default="licensed")

    # Stats
    views: Mapped[int] = mapped_column(Integer, default=0)
    downloads: Mapped[int] = mapped_column(Integer, default=0)
    stars: Mapped[int] = mapped_column(Integer, default=0)
    forks: Mapped[int] = mapped_column(Integer, default=0)

    # Visibility
    status: Mapped[str] = mapped_column(String(20), default="published")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)

    # Foreign key
    author_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    author: Mapped["User"] = relationship("User", foreign_keys=[author_id], lazy="selectin")
    licenses: Mapped[list["License"]] = relationship("License", back_populates="project")
    reviews: Mapped[list["Review"]] = relationship("Review", back_populates="project")

    # Indexes
    __table_args__ = (
        Index("idx_project_author_id", "author_id"),
        Index("idx_project_category", "category"),
        Index("idx_project_status", "status"),
    )

    def access_level(self, capability: str) -> str:
        """Return the access level configured for a capability name."""
        return getattr(self, f"access_{capability}")

    def __repr__(self) -> str:
        return f"<Project(uuid={self.uuid}, title={self.title}, author_id={self.author_id})>"

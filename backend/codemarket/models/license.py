"""License model for CodeMarket project grants."""
from datetime import datetime
from decimal import Decimal
from uuid import uuid4
from sqlalchemy import String, Numeric, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from codemarket.database import Base

PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")
PERMISSION_FLAGS = ("view_code", "download_code", "commercial_use", "modify", "redistribute", "private_use")


class License(Base):
    """A grant of rights on one project to one licensee."""

    __tablename__ = "licenses"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Foreign keys
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.uuid"), nullable=False)
    licensee_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)

    # Tier name from the license policy ("free", "basic", "premium", "enterprise")
    license_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Permissions snapshotted from the tier when the grant is created
    view_code: Mapped[bool] = mapped_column(Boolean, default=False)
    download_code: Mapped[bool] = mapped_column(Boolean, default=False)
    commercial_use: Mapped[bool] = mapped_column(Boolean, default=False)
    modify: Mapped[bool] = mapped_column(Boolean, default=False)
    redistribute: Mapped[bool] = mapped_column(Boolean, default=False)
    private_use: Mapped[bool] = mapped_column(Boolean, default=True)

    # Payment
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    payment_status: Mapped[str] = mapped_column(String(20), default="pending")

    is_active: Mapped[bool] = mapped_column(Boolean, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="licenses", foreign_keys=[project_id])
    licensee: Mapped["User"] = relationship("User", foreign_keys=[licensee_id])

    # Indexes
    __table_args__ = (
        # One live grant (active, or awaiting payment) per project and licensee
        Index(
            "uq_license_live_project_licensee",
            "project_id",
            "licensee_id",
            unique=True,
            postgresql_where=text("is_active OR payment_status = 'pending'"),
            sqlite_where=text("is_active = 1 OR payment_status = 'pending'"),
        ),
        Index("idx_license_project_id", "project_id"),
        Index("idx_license_licensee_id", "licensee_id"),
        Index("idx_license_payment_status", "payment_status"),
    )

    @property
    def permissions(self) -> dict[str, bool]:
        return {flag: getattr(self, flag) for flag in PERMISSION_FLAGS}

    def is_usable(self, now: datetime | None = None) -> bool:
        """True while the grant is active, paid and not expired."""
        now = now or datetime.utcnow()
        if not self.is_active or self.payment_status != "completed":
            return False
        return self.expires_at is None or self.expires_at > now

    def __repr__(self) -> str:
        return f"<License(uuid={self.uuid}, project_id={self.project_id}, licensee_id={self.licensee_id})>"

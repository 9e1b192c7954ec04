"""Review model for CodeMarket platform."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Integer, Boolean, DateTime, Text, ForeignKey, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from codemarket.database import Base


class Review(Base):
    """Review model for project ratings and comments."""

    __tablename__ = "reviews"

    # Primary key
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Review info
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, default="")
    is_verified_purchase: Mapped[bool] = mapped_column(Boolean, default=False)

    # Foreign keys
    reviewer_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.uuid"), nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    reviewer: Mapped["User"] = relationship("User", foreign_keys=[reviewer_id], lazy="selectin")
    project: Mapped["Project"] = relationship("Project", back_populates="reviews", foreign_keys=[project_id])

    # Constraints
    __table_args__ = (
        UniqueConstraint("reviewer_id", "project_id", name="uq_review_reviewer_project"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        Index("idx_review_reviewer_id", "reviewer_id"),
        Index("idx_review_project_id", "project_id"),
    )

    def __repr__(self) -> str:
        return f"<Review(uuid={self.uuid}, reviewer_id={self.reviewer_id}, project_id={self.project_id}, rating={self.rating})>"

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from challenge_tracker.models.base import Base


class Challenge(Base):
    __tablename__ = "challenges"
    __table_args__ = (
        UniqueConstraint("metacopier_account_id", name="uq_challenge_account"),
        Index("idx_challenges_owner", "owner"),
        Index("idx_challenges_prop_firm", "prop_firm"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    metacopier_account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    alias: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    prop_firm: Mapped[str] = mapped_column(String(100), nullable=False)
    phase: Mapped[str] = mapped_column(String(20), nullable=False)
    platform: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    target_pct: Mapped[float] = mapped_column(Numeric(6, 2), nullable=False, default=0)
    owner: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    login_number: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    login_server: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    cost: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    daily_dd_pct: Mapped[float | None] = mapped_column(Numeric(6, 2), nullable=True)
    max_dd_pct: Mapped[float | None] = mapped_column(Numeric(6, 2), nullable=True)
    is_master: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    snapshots = relationship("Snapshot", back_populates="challenge", cascade="all, delete-orphan")
    payouts = relationship("Payout", back_populates="challenge", cascade="all, delete-orphan")

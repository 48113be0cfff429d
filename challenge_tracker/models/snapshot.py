import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from challenge_tracker.models.base import Base


class Snapshot(Base):
    __tablename__ = "snapshots"
    __table_args__ = (
        Index("idx_snapshots_challenge_timestamp", "challenge_id", "timestamp"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    challenge_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    balance: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False)
    equity: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False)
    drawdown: Mapped[float] = mapped_column(Numeric(8, 2), nullable=False, default=0)
    unrealized_pnl: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False, default=0)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    challenge = relationship("Challenge", back_populates="snapshots")

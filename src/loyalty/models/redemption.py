"""Redemption domain models."""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, Enum as SAEnum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.exceptions import LedgerWriteError
from ..utils.datetime import utcnow


class RedemptionStatus(str, enum.Enum):
    """Possible redemption states."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Redemption(Base):
    """A user's exchange of points for one or more rewards."""

    __tablename__ = "redemptions"
    __table_args__ = (
        CheckConstraint("total_points >= 0", name="redemptions_total_points_non_negative"),
        Index("ix_redemptions_user_id", "user_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    status = Column(
        SAEnum(RedemptionStatus, name="redemption_status"),
        nullable=False,
        default=RedemptionStatus.PENDING,
    )
    total_points = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    lines = relationship(
        "RedemptionLine",
        back_populates="redemption",
        order_by="RedemptionLine.id",
        cascade="all, delete-orphan",
    )
    status_events = relationship(
        "RedemptionStatusEvent",
        back_populates="redemption",
        order_by="RedemptionStatusEvent.id",
    )
    ledger_entries = relationship("PointsLedgerEntry", back_populates="redemption")

    def lines_total(self) -> int:
        return sum(line.total_points for line in self.lines)

    def ensure_totals_match(self) -> None:
        """Refuse to persist a redemption whose total drifted from its lines."""

        lines_total = self.lines_total()
        if self.total_points != lines_total:
            raise LedgerWriteError(
                f"Redemption {self.id} total {self.total_points} does not match its lines ({lines_total})."
            )


class RedemptionLine(Base):
    """Reward line with name and cost snapshotted at redemption time."""

    __tablename__ = "redemption_lines"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="redemption_lines_quantity_positive"),
        CheckConstraint("points_cost >= 0", name="redemption_lines_points_cost_non_negative"),
        CheckConstraint("total_points = points_cost * quantity", name="redemption_lines_total_points"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    redemption_id = Column(Integer, ForeignKey("redemptions.id", ondelete="CASCADE"), nullable=False)
    reward_id = Column(Integer, ForeignKey("rewards.id", ondelete="RESTRICT"), nullable=False)
    reward_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    points_cost = Column(Integer, nullable=False)
    total_points = Column(Integer, nullable=False)

    redemption = relationship("Redemption", back_populates="lines")


class RedemptionStatusEvent(Base):
    """Audit trail entry for a status transition."""

    __tablename__ = "redemption_status_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    redemption_id = Column(Integer, ForeignKey("redemptions.id", ondelete="CASCADE"), nullable=False)
    from_status = Column(SAEnum(RedemptionStatus, name="redemption_status"), nullable=False)
    to_status = Column(SAEnum(RedemptionStatus, name="redemption_status"), nullable=False)
    comment = Column(String)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    redemption = relationship("Redemption", back_populates="status_events")

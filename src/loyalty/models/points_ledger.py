"""Points ledger model capturing every balance movement."""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Index, Integer, String, event
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.exceptions import LedgerWriteError
from ..utils.datetime import utcnow


class PointsEntryType(str, enum.Enum):
    """Ledger event classification."""

    EARN = "EARN"
    REDEEM = "REDEEM"
    REFUND = "REFUND"
    ADJUST = "ADJUST"


class PointsLedgerEntry(Base):
    """Immutable ledger of point deltas; a user's balance is the sum of their rows."""

    __tablename__ = "points_ledger"
    __table_args__ = (
        CheckConstraint(
            "(type = 'EARN' AND points > 0) "
            "OR (type = 'REDEEM' AND points < 0) "
            "OR (type = 'REFUND' AND points > 0) "
            "OR (type = 'ADJUST' AND points <> 0)",
            name="points_ledger_points_sign",
        ),
        Index("ix_points_ledger_user_id", "user_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    order_id = Column(String(64))
    reward_id = Column(Integer, ForeignKey("rewards.id", ondelete="SET NULL"))
    redemption_id = Column(Integer, ForeignKey("redemptions.id", ondelete="RESTRICT"))
    points = Column(Integer, nullable=False)
    entry_type = Column("type", Enum(PointsEntryType, name="points_entry_type"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    redemption = relationship("Redemption", back_populates="ledger_entries")


@event.listens_for(PointsLedgerEntry, "before_update")
def _refuse_update(mapper, connection, target) -> None:
    raise LedgerWriteError(f"Ledger entry {target.id} is immutable and cannot be updated.")


@event.listens_for(PointsLedgerEntry, "before_delete")
def _refuse_delete(mapper, connection, target) -> None:
    raise LedgerWriteError(f"Ledger entry {target.id} is immutable and cannot be deleted.")

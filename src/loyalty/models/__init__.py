"""SQLAlchemy models for the loyalty service."""

from .points_account import PointsAccount
from .points_ledger import PointsEntryType, PointsLedgerEntry
from .redemption import Redemption, RedemptionLine, RedemptionStatus, RedemptionStatusEvent
from .reward import Reward

__all__ = [
    "PointsAccount",
    "PointsEntryType",
    "PointsLedgerEntry",
    "Redemption",
    "RedemptionLine",
    "RedemptionStatus",
    "RedemptionStatusEvent",
    "Reward",
]

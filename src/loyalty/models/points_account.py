"""Per-user lock anchor for balance-dependent transactions."""

from sqlalchemy import Column, DateTime, String

from ..core.database import Base
from ..utils.datetime import utcnow


class PointsAccount(Base):
    """One row per user; locked ``FOR UPDATE`` to serialize spends. Holds no balance."""

    __tablename__ = "points_accounts"

    user_id = Column(String(64), primary_key=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

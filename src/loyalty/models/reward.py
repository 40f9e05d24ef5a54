"""Reward catalog model referenced by redemptions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from ..core.database import Base
from ..utils.datetime import utcnow


class Reward(Base):
    """Catalog entry; ``stock`` of ``NULL`` means the reward is unlimited."""

    __tablename__ = "rewards"
    __table_args__ = (
        CheckConstraint("points_cost >= 0", name="rewards_points_cost_non_negative"),
        CheckConstraint("stock IS NULL OR stock >= 0", name="rewards_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(String)
    points_cost = Column(Integer, nullable=False)
    stock = Column(Integer)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

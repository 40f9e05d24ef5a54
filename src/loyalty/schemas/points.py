"""Pydantic schemas for points balances and ledger statements."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import PointsEntryType


class PointsBalance(BaseModel):
    user_id: str
    total_points: int


class PointsLedgerEntryRead(BaseModel):
    """A single ledger movement."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    order_id: Optional[str]
    reward_id: Optional[int]
    redemption_id: Optional[int]
    points: int
    type: PointsEntryType = Field(..., validation_alias="entry_type")
    created_at: datetime


class PointsSummary(BaseModel):
    balance: PointsBalance
    transactions: List[PointsLedgerEntryRead]


class PointsAdjustmentCreate(BaseModel):
    """Administrative EARN or ADJUST posting."""

    user_id: str = Field(..., min_length=1, max_length=64)
    points: int
    type: PointsEntryType = PointsEntryType.ADJUST
    order_id: Optional[str] = Field(None, max_length=64)


class PointsAdjustmentReceipt(BaseModel):
    entry: PointsLedgerEntryRead
    balance: int = Field(..., description="Balance after this adjustment.")

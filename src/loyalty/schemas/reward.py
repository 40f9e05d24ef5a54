"""Reward stock schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class RewardStockStatus(BaseModel):
    """Whether a reward can currently cover a quantity."""

    reward_id: int
    name: str
    stock: Optional[int] = Field(None, description="Remaining units; null when unlimited.")
    requested_quantity: int
    available: bool

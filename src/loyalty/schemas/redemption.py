"""Pydantic schemas for redemption workflows."""

import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import RedemptionStatus


class SortField(str, enum.Enum):
    ID = "id"
    USER_ID = "user_id"
    STATUS = "status"
    TOTAL_POINTS = "total_points"
    CREATED_AT = "created_at"


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class RedeemRewardItem(BaseModel):
    """A reward and quantity to redeem."""

    reward_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)
    points_cost: Optional[int] = Field(
        None,
        ge=0,
        description="Unit cost shown to the user; informational only, recomputed from the catalog.",
    )


class RedeemRewardsRequest(BaseModel):
    """Incoming payload for redeeming rewards."""

    rewards: List[RedeemRewardItem] = Field(..., min_length=1)
    total_points: Optional[int] = Field(
        None,
        ge=0,
        description="Total shown to the user; informational only, recomputed from the catalog.",
    )


class RedemptionLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reward_id: int
    reward_name: str
    quantity: int
    points_cost: int
    total_points: int


class RedemptionStatusEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_status: RedemptionStatus
    to_status: RedemptionStatus
    comment: Optional[str]
    created_at: datetime


class RedemptionRead(BaseModel):
    """Represents a redemption record with its lines."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    status: RedemptionStatus
    total_points: int
    created_at: datetime
    updated_at: datetime
    lines: List[RedemptionLineRead]


class RedemptionDetail(RedemptionRead):
    """Redemption including its status history."""

    status_events: List[RedemptionStatusEventRead]


class RedemptionStatusUpdate(BaseModel):
    """Requested status change with an optional audit comment."""

    status: RedemptionStatus
    comment: Optional[str] = Field(None, max_length=1000)


class RedemptionListParams(BaseModel):
    """Validated listing options; out-of-range page or limit is rejected."""

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: Optional[str] = None
    status: Optional[RedemptionStatus] = None
    min_points: Optional[int] = Field(None, ge=0)
    max_points: Optional[int] = Field(None, ge=0)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    sort_field: SortField = SortField.CREATED_AT
    sort_direction: SortDirection = SortDirection.DESC


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(..., serialization_alias="totalPages")
    has_next: bool = Field(..., serialization_alias="hasNext")
    has_prev: bool = Field(..., serialization_alias="hasPrev")


class PaginatedRedemptions(BaseModel):
    """Page of redemptions with pagination details."""

    data: List[RedemptionRead]
    pagination: PaginationMeta

"""Public schema exports."""

from .points import (
	PointsAdjustmentCreate,
	PointsAdjustmentReceipt,
	PointsBalance,
	PointsLedgerEntryRead,
	PointsSummary,
)
from .redemption import (
	PaginatedRedemptions,
	PaginationMeta,
	RedeemRewardItem,
	RedeemRewardsRequest,
	RedemptionDetail,
	RedemptionListParams,
	RedemptionRead,
	RedemptionStatusUpdate,
	SortDirection,
	SortField,
)
from .reward import RewardStockStatus

__all__ = [
	"PaginatedRedemptions",
	"PaginationMeta",
	"PointsAdjustmentCreate",
	"PointsAdjustmentReceipt",
	"PointsBalance",
	"PointsLedgerEntryRead",
	"PointsSummary",
	"RedeemRewardItem",
	"RedeemRewardsRequest",
	"RedemptionDetail",
	"RedemptionListParams",
	"RedemptionRead",
	"RedemptionStatusUpdate",
	"RewardStockStatus",
	"SortDirection",
	"SortField",
]

"""Endpoints for reward redemptions."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db, run_in_transaction
from ...core.exceptions import LoyaltyError
from ...models import RedemptionStatus
from ...schemas import (
    PaginatedRedemptions,
    PaginationMeta,
    RedeemRewardsRequest,
    RedemptionDetail,
    RedemptionListParams,
    RedemptionRead,
    RedemptionStatusUpdate,
    RewardStockStatus,
    SortDirection,
    SortField,
)
from ...services import notifications, redemption_engine, redemption_query, redemption_workflow, reward_stock
from ...services.redemption_engine import RequestedLine
from ..deps import get_current_user_id, require_admin

router = APIRouter(prefix="/rewards", tags=["redemptions"])

_REDEMPTION_EXAMPLE = {
    "id": 42,
    "user_id": "3f1c2a9e-7d4b-4c1a-9a57-0b6f2d8e1c44",
    "status": "PENDING",
    "total_points": 200,
    "created_at": "2025-11-12T14:30:00",
    "updated_at": "2025-11-12T14:30:00",
    "lines": [
        {
            "id": 77,
            "reward_id": 1,
            "reward_name": "Coffee mug",
            "quantity": 2,
            "points_cost": 100,
            "total_points": 200,
        }
    ],
}


@router.post(
    "/redeem",
    response_model=RedemptionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Redeem rewards with points",
    responses={
        201: {
            "description": "Redemption created",
            "content": {"application/json": {"example": _REDEMPTION_EXAMPLE}},
        },
        401: {"description": "Missing user identity"},
        402: {"description": "Insufficient points"},
        404: {"description": "Reward not found or inactive"},
        409: {"description": "Insufficient stock or repeated transaction conflict"},
    },
)
def redeem_rewards(
    payload: RedeemRewardsRequest,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> RedemptionRead:
    """Spend points on one or more rewards.

    Costs are taken from the catalog; ``points_cost`` and ``total_points`` in
    the body are only what the client displayed.

    Example request body::

        {
            "rewards": [{"reward_id": 1, "quantity": 2, "points_cost": 100}],
            "total_points": 200
        }
    """

    lines = [
        RequestedLine(reward_id=item.reward_id, quantity=item.quantity, points_cost=item.points_cost)
        for item in payload.rewards
    ]
    try:
        redemption = run_in_transaction(
            db,
            lambda session: redemption_engine.redeem(
                session,
                user_id=user_id,
                lines=lines,
                client_total=payload.total_points,
            ),
        )
    except LoyaltyError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.as_detail()) from exc

    background_tasks.add_task(
        notifications.notify_redemption_event,
        "redemption.created",
        redemption_id=redemption.id,
        user_id=redemption.user_id,
        status=redemption.status.value,
    )
    return redemption


@router.get(
    "/redemptions",
    response_model=PaginatedRedemptions,
    summary="List redemptions",
    dependencies=[Depends(require_admin)],
    responses={
        200: {
            "description": "Paged redemption list",
            "content": {
                "application/json": {
                    "example": {
                        "data": [_REDEMPTION_EXAMPLE],
                        "pagination": {
                            "page": 1,
                            "limit": 10,
                            "total": 25,
                            "totalPages": 3,
                            "hasNext": True,
                            "hasPrev": False,
                        },
                    }
                }
            },
        },
        401: {"description": "Missing user identity or role"},
        403: {"description": "Admin role required"},
    },
)
def list_redemptions(
    *,
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Items per page"),
    search: Optional[str] = Query(None, description="Substring of the user id"),
    sort_field: SortField = Query(SortField.CREATED_AT, alias="sortField"),
    sort_direction: SortDirection = Query(SortDirection.DESC, alias="sortDirection"),
    status_filter: Optional[RedemptionStatus] = Query(None, alias="status"),
    min_points: Optional[int] = Query(None, ge=0, alias="minPoints"),
    max_points: Optional[int] = Query(None, ge=0, alias="maxPoints"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom", description="ISO 8601 lower bound"),
    date_to: Optional[datetime] = Query(None, alias="dateTo", description="ISO 8601 upper bound"),
    db: Session = Depends(get_db),
) -> PaginatedRedemptions:
    """Filter, sort and paginate redemptions; ties are broken by ascending id."""

    params = RedemptionListParams(
        page=page,
        limit=limit,
        search=search,
        status=status_filter,
        min_points=min_points,
        max_points=max_points,
        date_from=date_from,
        date_to=date_to,
        sort_field=sort_field,
        sort_direction=sort_direction,
    )
    redemptions, total = redemption_query.list_redemptions(db, params)
    return PaginatedRedemptions(
        data=[RedemptionRead.model_validate(redemption) for redemption in redemptions],
        pagination=PaginationMeta(**redemption_query.page_metadata(page, limit, total)),
    )


@router.get(
    "/my-redemptions",
    response_model=List[RedemptionRead],
    summary="List the caller's redemptions",
)
def list_my_redemptions(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> List[RedemptionRead]:
    return list(redemption_query.list_user_redemptions(db, user_id))


@router.get(
    "/redemptions/{redemption_id}",
    response_model=RedemptionDetail,
    summary="Get a redemption",
    dependencies=[Depends(require_admin)],
    responses={
        401: {"description": "Missing user identity or role"},
        403: {"description": "Admin role required"},
        404: {"description": "Redemption not found"},
    },
)
def get_redemption(redemption_id: int, db: Session = Depends(get_db)) -> RedemptionDetail:
    """Return a redemption with its lines and status history."""

    try:
        return redemption_query.get_redemption(db, redemption_id)
    except LoyaltyError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.as_detail()) from exc


@router.patch(
    "/redemptions/{redemption_id}/status",
    response_model=RedemptionDetail,
    summary="Change a redemption's status",
    dependencies=[Depends(require_admin)],
    responses={
        401: {"description": "Missing user identity or role"},
        403: {"description": "Admin role required"},
        404: {"description": "Redemption not found"},
        409: {"description": "Transition not allowed from the current status"},
    },
)
def update_redemption_status(
    redemption_id: int,
    payload: RedemptionStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> RedemptionDetail:
    """Advance a redemption through its workflow.

    Cancelling refunds the points and returns the reserved stock.

    Example request body::

        {"status": "CANCELLED", "comment": "out of stock upstream"}
    """

    try:
        redemption = run_in_transaction(
            db,
            lambda session: redemption_workflow.update_status(
                session,
                redemption_id=redemption_id,
                status=payload.status,
                comment=payload.comment,
            ),
        )
    except LoyaltyError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.as_detail()) from exc

    background_tasks.add_task(
        notifications.notify_redemption_event,
        "redemption.status_changed",
        redemption_id=redemption.id,
        user_id=redemption.user_id,
        status=redemption.status.value,
    )
    return redemption


@router.get(
    "/{reward_id}/stock",
    response_model=RewardStockStatus,
    summary="Check reward availability",
    dependencies=[Depends(require_admin)],
    responses={
        401: {"description": "Missing user identity or role"},
        403: {"description": "Admin role required"},
        404: {"description": "Reward not found or inactive"},
    },
)
def check_reward_stock(
    reward_id: int,
    quantity: int = Query(1, ge=1, description="Units the caller wants to redeem"),
    db: Session = Depends(get_db),
) -> RewardStockStatus:
    try:
        reward, available = reward_stock.check_stock(db, reward_id, quantity)
    except LoyaltyError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.as_detail()) from exc
    return RewardStockStatus(
        reward_id=reward.id,
        name=reward.name,
        stock=reward.stock,
        requested_quantity=quantity,
        available=available,
    )

"""Endpoints for point balances and the ledger statement."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db, run_in_transaction
from ...core.exceptions import LoyaltyError
from ...schemas import (
    PointsAdjustmentCreate,
    PointsAdjustmentReceipt,
    PointsBalance,
    PointsLedgerEntryRead,
    PointsSummary,
)
from ...services import points_ledger
from ..deps import get_current_user_id, require_admin

router = APIRouter(prefix="/points", tags=["points"])


@router.get("/me", response_model=PointsSummary, summary="Balance and recent ledger entries")
def get_my_points(
    limit: int = Query(50, ge=1, le=100, description="Maximum ledger entries to return"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> PointsSummary:
    balance = points_ledger.get_balance(db, user_id)
    entries = points_ledger.list_entries(db, user_id, limit=limit)
    return PointsSummary(
        balance=PointsBalance(user_id=user_id, total_points=balance),
        transactions=[PointsLedgerEntryRead.model_validate(entry) for entry in entries],
    )


@router.get("/me/balance", response_model=PointsBalance, summary="Current points balance")
def get_my_balance(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> PointsBalance:
    """Return the balance derived from the caller's ledger entries."""

    return PointsBalance(user_id=user_id, total_points=points_ledger.get_balance(db, user_id))


@router.get("/me/ledger", response_model=List[PointsLedgerEntryRead], summary="Ledger statement")
def get_my_ledger(
    limit: int = Query(50, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> List[PointsLedgerEntryRead]:
    return list(points_ledger.list_entries(db, user_id, limit=limit, offset=offset))


@router.post(
    "/adjustments",
    response_model=PointsAdjustmentReceipt,
    status_code=status.HTTP_201_CREATED,
    summary="Post an EARN or ADJUST entry",
    dependencies=[Depends(require_admin)],
    responses={
        400: {"description": "Entry type or amount not allowed"},
        401: {"description": "Missing user identity or role"},
        402: {"description": "Adjustment would overdraw the balance"},
        403: {"description": "Admin role required"},
    },
)
def create_adjustment(
    payload: PointsAdjustmentCreate,
    db: Session = Depends(get_db),
) -> PointsAdjustmentReceipt:
    """Credit or correct a user's points.

    Example request body::

        {"user_id": "3f1c2a9e-7d4b-4c1a-9a57-0b6f2d8e1c44", "points": 500, "type": "EARN", "order_id": "ORD-1001"}
    """

    try:
        entry, balance = run_in_transaction(
            db,
            lambda session: points_ledger.record_adjustment(
                session,
                user_id=payload.user_id,
                points=payload.points,
                entry_type=payload.type,
                order_id=payload.order_id,
            ),
        )
    except LoyaltyError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.as_detail()) from exc
    return PointsAdjustmentReceipt(entry=PointsLedgerEntryRead.model_validate(entry), balance=balance)

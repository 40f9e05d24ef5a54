"""Redemption status state machine and its ledger/stock side effects."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import InvalidStatusTransition, RedemptionNotFound
from ..models import PointsEntryType, Redemption, RedemptionStatus, RedemptionStatusEvent
from ..utils.datetime import utcnow
from . import points_ledger, reward_stock

logger = logging.getLogger(__name__)

SideEffect = Callable[[Session, Redemption], None]


def _status_only(session: Session, redemption: Redemption) -> None:
    return None


def _refund_and_restock(session: Session, redemption: Redemption) -> None:
    points_ledger.lock_account(session, redemption.user_id)
    for line in sorted(redemption.lines, key=lambda line: line.reward_id):
        reward_stock.restore_stock(session, line.reward_id, line.quantity)
    if redemption.total_points > 0:
        points_ledger.append(
            session,
            user_id=redemption.user_id,
            points=redemption.total_points,
            entry_type=PointsEntryType.REFUND,
            redemption_id=redemption.id,
        )


_TRANSITIONS: dict[RedemptionStatus, dict[RedemptionStatus, SideEffect]] = {
    RedemptionStatus.PENDING: {
        RedemptionStatus.PROCESSING: _status_only,
        RedemptionStatus.CANCELLED: _refund_and_restock,
    },
    RedemptionStatus.PROCESSING: {
        RedemptionStatus.COMPLETED: _status_only,
        RedemptionStatus.CANCELLED: _refund_and_restock,
    },
    RedemptionStatus.COMPLETED: {},
    RedemptionStatus.CANCELLED: {},
}


def allowed_transitions(status: RedemptionStatus) -> frozenset[RedemptionStatus]:
    return frozenset(_TRANSITIONS[status])


def is_terminal(status: RedemptionStatus) -> bool:
    return not _TRANSITIONS[status]


def _lock_redemption(session: Session, redemption_id: int) -> Redemption:
    stmt = (
        select(Redemption)
        .options(selectinload(Redemption.lines))
        .where(Redemption.id == redemption_id)
        .with_for_update(of=Redemption)
    )
    redemption = session.execute(stmt).scalar_one_or_none()
    if redemption is None:
        raise RedemptionNotFound(f"Redemption {redemption_id} not found.")
    return redemption


def update_status(
    session: Session,
    *,
    redemption_id: int,
    status: RedemptionStatus,
    comment: Optional[str] = None,
) -> Redemption:
    """Move a redemption to ``status`` applying the transition's side effects."""

    redemption = _lock_redemption(session, redemption_id)
    current = redemption.status

    side_effect = _TRANSITIONS[current].get(status)
    if side_effect is None:
        raise InvalidStatusTransition(current, status)

    redemption.ensure_totals_match()
    side_effect(session, redemption)

    session.add(
        RedemptionStatusEvent(
            redemption_id=redemption.id,
            from_status=current,
            to_status=status,
            comment=comment,
        )
    )
    redemption.status = status
    redemption.updated_at = utcnow()
    session.flush()

    logger.info(
        "redemption %s moved from %s to %s",
        redemption.id,
        current.value,
        status.value,
    )
    return redemption

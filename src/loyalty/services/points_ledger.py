"""Append-only points ledger and derived balances."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import ConcurrentModification, InsufficientPoints, LoyaltyError
from ..models import PointsAccount, PointsEntryType, PointsLedgerEntry

logger = logging.getLogger(__name__)

ADJUSTMENT_TYPES = (PointsEntryType.EARN, PointsEntryType.ADJUST)


def lock_account(session: Session, user_id: str) -> PointsAccount:
    """Lock the user's account row for the rest of the transaction, creating it on first use."""

    stmt = select(PointsAccount).where(PointsAccount.user_id == user_id).with_for_update()
    account = session.execute(stmt).scalar_one_or_none()
    if account is not None:
        return account

    account = PointsAccount(user_id=user_id)
    session.add(account)
    try:
        session.flush()
    except IntegrityError as exc:
        raise ConcurrentModification(f"Points account for user {user_id} was created concurrently.") from exc
    return account


def get_balance(session: Session, user_id: str) -> int:
    """Sum every ledger entry of the user inside the current transaction."""

    stmt = select(func.coalesce(func.sum(PointsLedgerEntry.points), 0)).where(
        PointsLedgerEntry.user_id == user_id
    )
    return int(session.execute(stmt).scalar_one())


def append(
    session: Session,
    *,
    user_id: str,
    points: int,
    entry_type: PointsEntryType,
    order_id: Optional[str] = None,
    reward_id: Optional[int] = None,
    redemption_id: Optional[int] = None,
) -> PointsLedgerEntry:
    """Persist one immutable ledger entry."""

    entry = PointsLedgerEntry(
        user_id=user_id,
        points=points,
        entry_type=entry_type,
        order_id=order_id,
        reward_id=reward_id,
        redemption_id=redemption_id,
    )
    session.add(entry)
    session.flush()
    return entry


def record_adjustment(
    session: Session,
    *,
    user_id: str,
    points: int,
    entry_type: PointsEntryType,
    order_id: Optional[str] = None,
) -> tuple[PointsLedgerEntry, int]:
    """Post an EARN or ADJUST entry and return it with the resulting balance."""

    if entry_type not in ADJUSTMENT_TYPES:
        raise LoyaltyError(f"{entry_type.value} entries are written by redemptions only.")
    if points == 0:
        raise LoyaltyError("Adjustment must change the balance.")
    if entry_type is PointsEntryType.EARN and points < 0:
        raise LoyaltyError("Earned points must be positive.")

    lock_account(session, user_id)
    balance = get_balance(session, user_id)
    if balance + points < 0:
        raise InsufficientPoints(
            f"Adjustment of {points} points would overdraw the balance of {balance} points."
        )

    entry = append(session, user_id=user_id, points=points, entry_type=entry_type, order_id=order_id)
    logger.info("ledger %s of %d points recorded for user %s", entry_type.value, points, user_id)
    return entry, balance + points


def list_entries(
    session: Session,
    user_id: str,
    *,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[PointsLedgerEntry]:
    """Return the user's ledger entries, newest first."""

    stmt = (
        select(PointsLedgerEntry)
        .where(PointsLedgerEntry.user_id == user_id)
        .order_by(PointsLedgerEntry.created_at.desc(), PointsLedgerEntry.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return session.execute(stmt).scalars().all()

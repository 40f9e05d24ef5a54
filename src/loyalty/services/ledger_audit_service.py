"""Consistency checks over the points ledger and redemptions."""

from __future__ import annotations

import logging

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from ..models import PointsEntryType, PointsLedgerEntry, Redemption, RedemptionLine, RedemptionStatus

logger = logging.getLogger(__name__)


def run_ledger_audit(session: Session) -> dict[str, int]:
    """Re-check the standing ledger invariants and log every violation found.

    Returns summary statistics useful for logging/testing.
    """

    summary = {
        "users_checked": 0,
        "negative_balances": 0,
        "total_mismatches": 0,
        "missing_refunds": 0,
    }

    balance = func.sum(PointsLedgerEntry.points).label("balance")
    balances = session.execute(
        select(PointsLedgerEntry.user_id, balance).group_by(PointsLedgerEntry.user_id)
    ).all()
    summary["users_checked"] = len(balances)
    for user_id, user_balance in balances:
        if user_balance < 0:
            summary["negative_balances"] += 1
            logger.warning("ledger audit: user %s has negative balance %d", user_id, user_balance)

    lines_total = (
        select(
            RedemptionLine.redemption_id,
            func.sum(RedemptionLine.total_points).label("lines_total"),
        )
        .group_by(RedemptionLine.redemption_id)
        .subquery()
    )
    mismatches = session.execute(
        select(Redemption.id, Redemption.total_points, lines_total.c.lines_total)
        .outerjoin(lines_total, lines_total.c.redemption_id == Redemption.id)
        .where(Redemption.total_points != func.coalesce(lines_total.c.lines_total, 0))
    ).all()
    for redemption_id, total_points, computed in mismatches:
        summary["total_mismatches"] += 1
        logger.warning(
            "ledger audit: redemption %s total %d differs from lines total %s",
            redemption_id,
            total_points,
            computed,
        )

    refunded = (
        select(PointsLedgerEntry.redemption_id)
        .where(PointsLedgerEntry.entry_type == PointsEntryType.REFUND)
        .where(PointsLedgerEntry.redemption_id.is_not(None))
    )
    missing = session.execute(
        select(Redemption.id).where(
            and_(
                Redemption.status == RedemptionStatus.CANCELLED,
                Redemption.total_points > 0,
                Redemption.id.not_in(refunded),
            )
        )
    ).scalars().all()
    for redemption_id in missing:
        summary["missing_refunds"] += 1
        logger.warning("ledger audit: cancelled redemption %s has no refund entry", redemption_id)

    return summary

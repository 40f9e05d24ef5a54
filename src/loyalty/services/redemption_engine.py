"""Validation and atomic creation of reward redemptions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ..core.exceptions import InsufficientPoints, InsufficientStock, LoyaltyError
from ..models import PointsEntryType, Redemption, RedemptionLine, RedemptionStatus, Reward
from . import points_ledger, reward_stock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestedLine:
    """One reward line as submitted by the client.

    ``points_cost`` is a display hint only; the catalog price is always used.
    """

    reward_id: int
    quantity: int
    points_cost: Optional[int] = None


def _merge_quantities(lines: Sequence[RequestedLine]) -> dict[int, int]:
    quantities: dict[int, int] = {}
    for line in lines:
        if line.quantity <= 0:
            raise LoyaltyError(f"Quantity for reward {line.reward_id} must be positive.")
        quantities[line.reward_id] = quantities.get(line.reward_id, 0) + line.quantity
    return quantities


def _log_hint_mismatch(
    user_id: str,
    lines: Sequence[RequestedLine],
    rewards: dict[int, Reward],
    client_total: Optional[int],
    total_points: int,
) -> None:
    stale = [
        line.reward_id
        for line in lines
        if line.points_cost is not None and line.points_cost != rewards[line.reward_id].points_cost
    ]
    if stale or (client_total is not None and client_total != total_points):
        logger.warning(
            "client price hints ignored for user %s: stale rewards=%s client_total=%s computed_total=%d",
            user_id,
            stale,
            client_total,
            total_points,
        )


def redeem(
    session: Session,
    *,
    user_id: str,
    lines: Sequence[RequestedLine],
    client_total: Optional[int] = None,
) -> Redemption:
    """Validate a redemption request and write stock, ledger and redemption rows.

    Must run inside one transaction (see ``run_in_transaction``); nothing is
    committed here, so any raised error leaves no trace once rolled back.
    """

    if not lines:
        raise LoyaltyError("At least one reward is required to redeem.")

    quantities = _merge_quantities(lines)

    # Account first, then rewards by ascending id; the workflow locks in the same order.
    points_ledger.lock_account(session, user_id)
    rewards = {
        reward_id: reward_stock.get_reward(session, reward_id, for_update=True)
        for reward_id in sorted(quantities)
    }

    for reward_id, quantity in quantities.items():
        reward = rewards[reward_id]
        if reward.stock is not None and quantity > reward.stock:
            raise InsufficientStock(
                f"Insufficient stock for reward {reward.name}: requested {quantity}, available {reward.stock}."
            )

    total_points = sum(rewards[reward_id].points_cost * quantity for reward_id, quantity in quantities.items())
    _log_hint_mismatch(user_id, lines, rewards, client_total, total_points)

    balance = points_ledger.get_balance(session, user_id)
    if balance < total_points:
        raise InsufficientPoints(
            f"Insufficient points: redemption costs {total_points}, balance is {balance}."
        )

    for reward_id in sorted(quantities):
        reward_stock.decrement_stock(session, rewards[reward_id], quantities[reward_id])

    redemption = Redemption(
        user_id=user_id,
        status=RedemptionStatus.PENDING,
        total_points=total_points,
        lines=[
            RedemptionLine(
                reward_id=reward_id,
                reward_name=rewards[reward_id].name,
                quantity=quantity,
                points_cost=rewards[reward_id].points_cost,
                total_points=rewards[reward_id].points_cost * quantity,
            )
            for reward_id, quantity in quantities.items()
        ],
    )
    redemption.ensure_totals_match()
    session.add(redemption)
    session.flush()

    if total_points > 0:
        points_ledger.append(
            session,
            user_id=user_id,
            points=-total_points,
            entry_type=PointsEntryType.REDEEM,
            reward_id=next(iter(quantities)) if len(quantities) == 1 else None,
            redemption_id=redemption.id,
        )

    logger.info(
        "redemption %s created for user %s: %d points, rewards=%s",
        redemption.id,
        user_id,
        total_points,
        quantities,
    )
    return redemption

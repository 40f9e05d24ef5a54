"""Stock reads and atomic stock changes on catalog rewards."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.exceptions import ConcurrentModification, RewardNotFound
from ..models import Reward
from ..utils.datetime import utcnow


def get_reward(session: Session, reward_id: int, *, for_update: bool = False) -> Reward:
    """Fetch an active reward, optionally locking its row."""

    stmt = select(Reward).where(Reward.id == reward_id)
    if for_update:
        stmt = stmt.with_for_update()
    reward = session.execute(stmt).scalar_one_or_none()
    if reward is None or not reward.is_active:
        raise RewardNotFound(f"Reward {reward_id} not found.")
    return reward


def check_stock(session: Session, reward_id: int, quantity: int = 1) -> tuple[Reward, bool]:
    """Return the reward and whether it can cover ``quantity`` units."""

    reward = get_reward(session, reward_id)
    if reward.stock is None:
        return reward, True
    return reward, reward.stock >= quantity


def decrement_stock(session: Session, reward: Reward, quantity: int) -> None:
    """Reserve ``quantity`` units; unlimited rewards are left untouched."""

    if reward.stock is None:
        return

    stmt = (
        update(Reward)
        .where(Reward.id == reward.id, Reward.stock >= quantity)
        .values(stock=Reward.stock - quantity, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if result.rowcount != 1:
        raise ConcurrentModification(f"Stock of reward {reward.id} changed during the redemption.")
    session.expire(reward, ["stock", "updated_at"])


def restore_stock(session: Session, reward_id: int, quantity: int) -> None:
    """Give back ``quantity`` reserved units to a stock-tracked reward."""

    stmt = (
        update(Reward)
        .where(Reward.id == reward_id, Reward.stock.is_not(None))
        .values(stock=Reward.stock + quantity, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    session.execute(stmt)

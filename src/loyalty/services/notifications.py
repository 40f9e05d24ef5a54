"""Post-commit hand-off of redemption events to the notification collaborator."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def notify_redemption_event(event: str, *, redemption_id: int, user_id: str, status: str) -> None:
    """Record a committed redemption event for the external notification service."""

    logger.info(
        "notification queued: event=%s redemption=%s user=%s status=%s",
        event,
        redemption_id,
        user_id,
        status,
    )

"""Read-only access to redemptions for listings and detail views."""

from __future__ import annotations

import math
from typing import Sequence

from sqlalchemy import String, cast, func, select
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import RedemptionNotFound
from ..models import Redemption
from ..schemas.redemption import RedemptionListParams, SortDirection, SortField
from ..utils.datetime import to_naive_utc

_SORT_COLUMNS = {
    SortField.ID: Redemption.id,
    SortField.USER_ID: Redemption.user_id,
    # Sorted by label so PostgreSQL enums order the same as SQLite strings.
    SortField.STATUS: cast(Redemption.status, String),
    SortField.TOTAL_POINTS: Redemption.total_points,
    SortField.CREATED_AT: Redemption.created_at,
}


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _filters(params: RedemptionListParams) -> list:
    filters = []
    if params.search:
        filters.append(Redemption.user_id.ilike(_like_pattern(params.search), escape="\\"))
    if params.status is not None:
        filters.append(Redemption.status == params.status)
    if params.min_points is not None:
        filters.append(Redemption.total_points >= params.min_points)
    if params.max_points is not None:
        filters.append(Redemption.total_points <= params.max_points)
    if params.date_from is not None:
        filters.append(Redemption.created_at >= to_naive_utc(params.date_from))
    if params.date_to is not None:
        filters.append(Redemption.created_at <= to_naive_utc(params.date_to))
    return filters


def list_redemptions(session: Session, params: RedemptionListParams) -> tuple[Sequence[Redemption], int]:
    """Return one page of redemptions and the total number of matches.

    An inverted date range matches nothing rather than raising.
    """

    date_from = to_naive_utc(params.date_from)
    date_to = to_naive_utc(params.date_to)
    if date_from is not None and date_to is not None and date_from > date_to:
        return [], 0

    filters = _filters(params)

    count_stmt = select(func.count()).select_from(Redemption)
    if filters:
        count_stmt = count_stmt.where(*filters)
    total = session.execute(count_stmt).scalar_one()

    column = _SORT_COLUMNS[params.sort_field]
    ordering = column.desc() if params.sort_direction is SortDirection.DESC else column.asc()

    stmt = (
        select(Redemption)
        .options(selectinload(Redemption.lines))
        .order_by(ordering, Redemption.id.asc())
        .offset((params.page - 1) * params.limit)
        .limit(params.limit)
    )
    if filters:
        stmt = stmt.where(*filters)

    return session.execute(stmt).scalars().all(), total


def page_metadata(page: int, limit: int, total: int) -> dict[str, int | bool]:
    total_pages = math.ceil(total / limit) if total else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def get_redemption(session: Session, redemption_id: int) -> Redemption:
    stmt = (
        select(Redemption)
        .options(selectinload(Redemption.lines), selectinload(Redemption.status_events))
        .where(Redemption.id == redemption_id)
    )
    redemption = session.execute(stmt).scalar_one_or_none()
    if redemption is None:
        raise RedemptionNotFound(f"Redemption {redemption_id} not found.")
    return redemption


def list_user_redemptions(session: Session, user_id: str) -> Sequence[Redemption]:
    """Return the user's own redemptions, newest first."""

    stmt = (
        select(Redemption)
        .options(selectinload(Redemption.lines))
        .where(Redemption.user_id == user_id)
        .order_by(Redemption.created_at.desc(), Redemption.id.desc())
    )
    return session.execute(stmt).scalars().all()

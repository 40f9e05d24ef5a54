import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from loyalty.core.database import run_in_transaction
from loyalty.core.exceptions import InvalidStatusTransition, LedgerWriteError, RedemptionNotFound
from loyalty.models import PointsEntryType, PointsLedgerEntry, RedemptionStatus
from loyalty.services import points_ledger, redemption_engine, redemption_query, redemption_workflow, reward_stock
from loyalty.services.redemption_engine import RequestedLine

USER = "user-w"


@pytest.fixture
def redemption_id(session, make_reward, grant_points):
    reward_id = make_reward(points_cost=100, stock=10)
    grant_points(USER, 500)
    redemption = run_in_transaction(
        session,
        lambda s: redemption_engine.redeem(s, user_id=USER, lines=[RequestedLine(reward_id=reward_id, quantity=2)]),
    )
    return redemption.id


def _move(session, redemption_id, status, comment=None):
    return run_in_transaction(
        session,
        lambda s: redemption_workflow.update_status(s, redemption_id=redemption_id, status=status, comment=comment),
    )


def _reward_id(session, redemption_id):
    return redemption_query.get_redemption(session, redemption_id).lines[0].reward_id


def test_transition_table():
    assert redemption_workflow.allowed_transitions(RedemptionStatus.PENDING) == {
        RedemptionStatus.PROCESSING,
        RedemptionStatus.CANCELLED,
    }
    assert redemption_workflow.allowed_transitions(RedemptionStatus.PROCESSING) == {
        RedemptionStatus.COMPLETED,
        RedemptionStatus.CANCELLED,
    }
    assert redemption_workflow.is_terminal(RedemptionStatus.COMPLETED)
    assert redemption_workflow.is_terminal(RedemptionStatus.CANCELLED)
    assert not redemption_workflow.is_terminal(RedemptionStatus.PENDING)


def test_cancel_after_processing_refunds_and_restocks(session, redemption_id, balance_of, stock_of):
    reward_id = _reward_id(session, redemption_id)
    assert balance_of(USER) == 300
    assert stock_of(reward_id) == 8

    _move(session, redemption_id, RedemptionStatus.PROCESSING)
    redemption = _move(session, redemption_id, RedemptionStatus.CANCELLED, comment="out of stock upstream")

    assert redemption.status is RedemptionStatus.CANCELLED
    assert balance_of(USER) == 500
    assert stock_of(reward_id) == 10

    detail = redemption_query.get_redemption(session, redemption_id)
    assert [(e.from_status, e.to_status, e.comment) for e in detail.status_events] == [
        (RedemptionStatus.PENDING, RedemptionStatus.PROCESSING, None),
        (RedemptionStatus.PROCESSING, RedemptionStatus.CANCELLED, "out of stock upstream"),
    ]

    entries = session.execute(
        select(PointsLedgerEntry)
        .where(PointsLedgerEntry.redemption_id == redemption_id)
        .order_by(PointsLedgerEntry.id)
    ).scalars().all()
    assert [(entry.entry_type, entry.points) for entry in entries] == [
        (PointsEntryType.REDEEM, -200),
        (PointsEntryType.REFUND, 200),
    ]


def test_cancel_from_pending_restores_balance_and_stock(session, redemption_id, balance_of, stock_of):
    reward_id = _reward_id(session, redemption_id)

    _move(session, redemption_id, RedemptionStatus.CANCELLED)

    assert balance_of(USER) == 500
    assert stock_of(reward_id) == 10


def test_completion_keeps_points_spent_and_stock_reserved(session, redemption_id, balance_of, stock_of):
    reward_id = _reward_id(session, redemption_id)

    _move(session, redemption_id, RedemptionStatus.PROCESSING)
    redemption = _move(session, redemption_id, RedemptionStatus.COMPLETED)

    assert redemption.status is RedemptionStatus.COMPLETED
    assert balance_of(USER) == 300
    assert stock_of(reward_id) == 8


def test_completed_redemption_cannot_go_back(session, redemption_id, balance_of, stock_of):
    reward_id = _reward_id(session, redemption_id)
    _move(session, redemption_id, RedemptionStatus.PROCESSING)
    _move(session, redemption_id, RedemptionStatus.COMPLETED)

    with pytest.raises(InvalidStatusTransition):
        _move(session, redemption_id, RedemptionStatus.PROCESSING)

    detail = redemption_query.get_redemption(session, redemption_id)
    assert detail.status is RedemptionStatus.COMPLETED
    assert len(detail.status_events) == 2
    assert balance_of(USER) == 300
    assert stock_of(reward_id) == 8


def test_cancelled_redemption_cannot_be_cancelled_twice(session, redemption_id, balance_of, stock_of):
    reward_id = _reward_id(session, redemption_id)
    _move(session, redemption_id, RedemptionStatus.CANCELLED)

    with pytest.raises(InvalidStatusTransition):
        _move(session, redemption_id, RedemptionStatus.CANCELLED)

    assert balance_of(USER) == 500
    assert stock_of(reward_id) == 10


@pytest.mark.parametrize(
    "target",
    [RedemptionStatus.PENDING, RedemptionStatus.COMPLETED],
)
def test_pending_rejects_illegal_targets(session, redemption_id, target):
    with pytest.raises(InvalidStatusTransition) as excinfo:
        _move(session, redemption_id, target)

    assert excinfo.value.current_status is RedemptionStatus.PENDING
    assert redemption_query.get_redemption(session, redemption_id).status is RedemptionStatus.PENDING


def test_unknown_redemption(session):
    with pytest.raises(RedemptionNotFound):
        _move(session, 12345, RedemptionStatus.PROCESSING)


def test_refetching_terminal_redemption_is_stable(session, redemption_id):
    _move(session, redemption_id, RedemptionStatus.CANCELLED, comment="changed my mind")

    first = redemption_query.get_redemption(session, redemption_id)
    snapshot = (first.status, first.total_points, first.updated_at, len(first.status_events))
    session.expire_all()
    second = redemption_query.get_redemption(session, redemption_id)

    assert (second.status, second.total_points, second.updated_at, len(second.status_events)) == snapshot


def test_refund_fault_after_restock_keeps_redemption_pending(
    session, session_factory, monkeypatch, redemption_id, balance_of, stock_of
):
    reward_id = _reward_id(session, redemption_id)

    restored = []
    original_restore = reward_stock.restore_stock

    def tracking_restore(s, restored_reward_id, quantity):
        original_restore(s, restored_reward_id, quantity)
        restored.append((restored_reward_id, quantity))

    def failing_append(*args, **kwargs):
        raise OperationalError("INSERT INTO points_ledger", {}, Exception("disk I/O error"))

    monkeypatch.setattr(reward_stock, "restore_stock", tracking_restore)
    monkeypatch.setattr(points_ledger, "append", failing_append)

    with pytest.raises(LedgerWriteError):
        _move(session, redemption_id, RedemptionStatus.CANCELLED)

    assert restored == [(reward_id, 2)]
    assert stock_of(reward_id) == 8
    assert balance_of(USER) == 300
    with session_factory() as db:
        detail = redemption_query.get_redemption(db, redemption_id)
        assert detail.status is RedemptionStatus.PENDING
        assert detail.status_events == []

import asyncio

from loyalty.core.database import run_in_transaction
from loyalty.jobs import ledger_audit as ledger_audit_job
from loyalty.models import (
    PointsEntryType,
    PointsLedgerEntry,
    Redemption,
    RedemptionLine,
    RedemptionStatus,
)
from loyalty.services import redemption_engine, redemption_workflow
from loyalty.services.ledger_audit_service import run_ledger_audit
from loyalty.services.redemption_engine import RequestedLine


def test_clean_ledger_has_no_findings(session, make_reward, grant_points):
    reward_id = make_reward(points_cost=100, stock=10)
    grant_points("auditor", 500)
    redemption = run_in_transaction(
        session,
        lambda s: redemption_engine.redeem(s, user_id="auditor", lines=[RequestedLine(reward_id=reward_id, quantity=1)]),
    )
    run_in_transaction(
        session,
        lambda s: redemption_workflow.update_status(
            s, redemption_id=redemption.id, status=RedemptionStatus.CANCELLED
        ),
    )

    assert run_ledger_audit(session) == {
        "users_checked": 1,
        "negative_balances": 0,
        "total_mismatches": 0,
        "missing_refunds": 0,
    }


def test_violations_written_behind_the_engine_are_reported(session, make_reward):
    reward_id = make_reward(points_cost=10)
    session.add(PointsLedgerEntry(user_id="overdrawn", points=-30, entry_type=PointsEntryType.ADJUST))
    session.add(
        Redemption(
            user_id="tampered",
            status=RedemptionStatus.CANCELLED,
            total_points=999,
            lines=[
                RedemptionLine(
                    reward_id=reward_id,
                    reward_name="Mug",
                    quantity=1,
                    points_cost=10,
                    total_points=10,
                )
            ],
        )
    )
    session.commit()

    summary = run_ledger_audit(session)

    assert summary["negative_balances"] == 1
    assert summary["total_mismatches"] == 1
    assert summary["missing_refunds"] == 1


def test_run_audit_once_uses_a_fresh_session(monkeypatch, session_factory, grant_points):
    grant_points("manual", 40)
    monkeypatch.setattr(ledger_audit_job, "SessionLocal", session_factory)

    assert ledger_audit_job.run_audit_once() == {
        "users_checked": 1,
        "negative_balances": 0,
        "total_mismatches": 0,
        "missing_refunds": 0,
    }


def test_scheduled_audit_logs_violations(monkeypatch, session, session_factory, caplog):
    session.add(PointsLedgerEntry(user_id="overdrawn", points=-5, entry_type=PointsEntryType.ADJUST))
    session.commit()
    monkeypatch.setattr(ledger_audit_job, "SessionLocal", session_factory)

    with caplog.at_level("WARNING", logger="loyalty.jobs.ledger_audit"):
        asyncio.run(ledger_audit_job._execute_ledger_audit())

    assert "ledger audit found violations" in caplog.text

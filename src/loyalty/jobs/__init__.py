"""Background jobs."""

from .ledger_audit import register_scheduler, run_audit_once

__all__ = ["register_scheduler", "run_audit_once"]

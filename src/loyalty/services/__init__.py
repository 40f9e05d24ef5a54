"""Service layer exports."""

from . import (
	ledger_audit_service,
	notifications,
	points_ledger,
	redemption_engine,
	redemption_query,
	redemption_workflow,
	reward_stock,
)

__all__ = [
	"ledger_audit_service",
	"notifications",
	"points_ledger",
	"redemption_engine",
	"redemption_query",
	"redemption_workflow",
	"reward_stock",
]

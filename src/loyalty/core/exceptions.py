"""Error taxonomy shared by the ledger, redemption engine and workflow."""

from __future__ import annotations


class LoyaltyError(Exception):
    """Base class for errors reported back to API callers."""

    code = "LOYALTY_ERROR"
    status_code = 400

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code

    def as_detail(self) -> dict[str, str]:
        return {"code": self.code, "message": self.detail}


class RewardNotFound(LoyaltyError):
    """Raised when a requested reward is missing or inactive."""

    code = "REWARD_NOT_FOUND"
    status_code = 404


class InsufficientStock(LoyaltyError):
    """Raised when a reward cannot cover the requested quantity."""

    code = "INSUFFICIENT_STOCK"
    status_code = 409


class InsufficientPoints(LoyaltyError):
    """Raised when the user's ledger balance cannot cover a debit."""

    code = "INSUFFICIENT_POINTS"
    status_code = 402


class RedemptionNotFound(LoyaltyError):
    code = "REDEMPTION_NOT_FOUND"
    status_code = 404


class InvalidStatusTransition(LoyaltyError):
    """Raised when a status change is not allowed by the workflow."""

    code = "INVALID_STATUS_TRANSITION"
    status_code = 409

    def __init__(self, current_status, requested_status) -> None:
        super().__init__(
            f"Cannot transition redemption from {current_status.value} to {requested_status.value}."
        )
        self.current_status = current_status
        self.requested_status = requested_status


class ConcurrentModification(LoyaltyError):
    """Raised when a transaction lost a race; retried before surfacing."""

    code = "CONCURRENT_MODIFICATION"
    status_code = 409


class LedgerWriteError(LoyaltyError):
    """Raised on storage faults; fatal to the request."""

    code = "LEDGER_WRITE_ERROR"
    status_code = 503

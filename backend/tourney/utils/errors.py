"""Custom exception classes for tournament clock and settlement errors.

Provides structured error handling with error codes and operator-facing messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes for tournament errors."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Configuration errors
    INVALID_STRUCTURE = "INVALID_STRUCTURE"
    INVALID_PAYOUT_CONFIG = "INVALID_PAYOUT_CONFIG"

    # Tournament errors
    TOURNAMENT_NOT_FOUND = "TOURNAMENT_NOT_FOUND"
    INVALID_TOURNAMENT_STATUS = "INVALID_TOURNAMENT_STATUS"

    # Settlement errors
    CHIP_IMBALANCE = "CHIP_IMBALANCE"
    DUPLICATE_REGISTRATION = "DUPLICATE_REGISTRATION"
    ALREADY_SETTLED = "ALREADY_SETTLED"
    SETTLEMENT_CANCELLED = "SETTLEMENT_CANCELLED"

    # Ledger errors
    LEDGER_ERROR = "LEDGER_ERROR"


class TourneyError(Exception):
    """Base exception for tournament-related errors.

    Attributes:
        code: Error code for programmatic handling
        message: Operator-facing error message
        details: Additional error details
        recoverable: Whether the operator can fix the cause and retry
    """

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
    ):
        self.code = code if isinstance(code, str) else code.value
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "errorCode": self.code,
            "errorMessage": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class StructureError(TourneyError):
    """Raised when a blind structure item violates its invariants."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code=ErrorCode.INVALID_STRUCTURE,
            message=message,
            details=details,
        )


class PayoutError(TourneyError):
    """Raised when payout inputs or configuration cannot be computed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code=ErrorCode.INVALID_PAYOUT_CONFIG,
            message=message,
            details=details,
        )


class ChipImbalanceError(TourneyError):
    """Raised when counted chips do not match the chips issued by buy-ins.

    ``difference`` is signed: positive means chips are missing from the
    count, negative means more chips were counted than were issued.
    """

    def __init__(self, chips_issued: int, chips_counted: int):
        self.chips_issued = chips_issued
        self.chips_counted = chips_counted
        self.difference = chips_issued - chips_counted
        super().__init__(
            code=ErrorCode.CHIP_IMBALANCE,
            message=(
                f"Chip count mismatch: issued {chips_issued:,}, "
                f"counted {chips_counted:,} ({self.difference:+,})"
            ),
            details={
                "chips_issued": chips_issued,
                "chips_counted": chips_counted,
                "difference": self.difference,
            },
        )


class DuplicateRegistrationError(TourneyError):
    """Raised when a member holds more than one active registration.

    Each member is credited at most one WIN per tournament, so such a field
    cannot be settled until the extra entries are cancelled.
    """

    def __init__(self, member_ids: list[str]):
        self.member_ids = member_ids
        super().__init__(
            code=ErrorCode.DUPLICATE_REGISTRATION,
            message=f"Members registered more than once: {', '.join(member_ids)}",
            details={"member_ids": member_ids},
        )


class TournamentNotFoundError(TourneyError):
    """Raised when a tournament does not exist."""

    def __init__(self, tournament_id: str):
        super().__init__(
            code=ErrorCode.TOURNAMENT_NOT_FOUND,
            message=f"Tournament not found: {tournament_id}",
            details={"tournament_id": tournament_id},
            recoverable=False,
        )


class InvalidTournamentStatus(TourneyError):
    """Raised when an operation is not allowed in the tournament's status."""

    def __init__(self, message: str, current: str, expected: str | None = None):
        details: dict[str, Any] = {"current_status": current}
        if expected:
            details["expected_status"] = expected
        super().__init__(
            code=ErrorCode.INVALID_TOURNAMENT_STATUS,
            message=message,
            details=details,
        )


class AlreadySettledError(TourneyError):
    """Raised when settlement is requested for a completed tournament."""

    def __init__(self, tournament_id: str):
        super().__init__(
            code=ErrorCode.ALREADY_SETTLED,
            message=f"Tournament already settled: {tournament_id}",
            details={"tournament_id": tournament_id},
            recoverable=False,
        )


class SettlementCancelledError(TourneyError):
    """Raised when an in-flight settlement is cancelled before commit."""

    def __init__(self, tournament_id: str):
        super().__init__(
            code=ErrorCode.SETTLEMENT_CANCELLED,
            message=f"Settlement cancelled: {tournament_id}",
            details={"tournament_id": tournament_id},
        )


class LedgerError(TourneyError):
    """Raised when a ledger entry cannot be written."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code=ErrorCode.LEDGER_ERROR,
            message=message,
            details=details,
            recoverable=False,
        )

# src/padelrank/exceptions.py

"""Custom exception hierarchy for PadelRank.

This module provides a structured exception hierarchy that enables:
1. Proper HTTP status code mapping in API endpoints
2. Detailed error context for logging and debugging
3. Clear distinction between caller errors and rating engine failures

Report eligibility refusals are NOT exceptions; they are returned as
``ReportEligibility`` values by the reporting service.
"""

from __future__ import annotations


class PadelRankError(Exception):
    """Base exception for all PadelRank errors.

    Attributes:
        message: Human-readable error description
        details: Optional dict with additional context for logging/debugging
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# =============================================================================
# Resource Not Found Errors (HTTP 404)
# =============================================================================


class ResourceNotFoundError(PadelRankError):
    """Base class for resource not found errors."""

    pass


class MatchNotFoundError(ResourceNotFoundError):
    """Raised when a match ID does not exist."""

    def __init__(self, match_id: int) -> None:
        super().__init__(
            message=f"Match with ID {match_id} not found",
            details={"match_id": match_id},
        )


class PlayerNotFoundError(ResourceNotFoundError):
    """Raised when a player ID does not exist."""

    def __init__(self, player_id: int) -> None:
        super().__init__(
            message=f"Player with ID {player_id} not found",
            details={"player_id": player_id},
        )


# =============================================================================
# Validation Errors (HTTP 422)
# =============================================================================


class ValidationError(PadelRankError):
    """Base class for validation errors."""

    pass


class InvalidScoreError(ValidationError):
    """Raised when submitted set scores are malformed."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            message=f"Invalid match score: {reason}",
            details={"reason": reason},
        )


class DuplicatePlayerError(ValidationError):
    """Raised when the same player fills more than one slot in a match."""

    def __init__(self, player_ids: list[int]) -> None:
        super().__init__(
            message=f"Duplicate player(s) in match: {player_ids}",
            details={"duplicate_player_ids": player_ids},
        )


class MatchResultAlreadyRecordedError(ValidationError):
    """Raised when a result is submitted for a match that already has one."""

    def __init__(self, match_id: int) -> None:
        super().__init__(
            message=f"Match {match_id} already has a recorded result",
            details={"match_id": match_id},
        )


class MatchCancelledError(ValidationError):
    """Raised when a result is submitted for a cancelled match."""

    def __init__(self, match_id: int) -> None:
        super().__init__(
            message=f"Match {match_id} was cancelled and cannot take a result",
            details={"match_id": match_id},
        )


class InconsistentMatchError(ValidationError):
    """Raised when a stored match cannot be rated as recorded."""

    def __init__(self, match_id: int, reason: str) -> None:
        super().__init__(
            message=f"Match {match_id} cannot be finalized: {reason}",
            details={"match_id": match_id, "reason": reason},
        )


# =============================================================================
# Conflict Errors (HTTP 409)
# =============================================================================


class ConflictError(PadelRankError):
    """Base class for unique-constraint style conflicts."""

    pass


class DuplicateReportError(ConflictError):
    """Raised by the report store when a user reports the same match twice."""

    def __init__(self, match_id: int, reporter_id: int) -> None:
        super().__init__(
            message=f"Player {reporter_id} has already reported match {match_id}",
            details={"match_id": match_id, "reporter_id": reporter_id},
        )


class DuplicateConfirmationError(ConflictError):
    """Raised by the confirmation store when a player answers the same score twice."""

    def __init__(self, match_id: int, player_id: int) -> None:
        super().__init__(
            message=f"Player {player_id} has already responded to match {match_id}",
            details={"match_id": match_id, "player_id": player_id},
        )


# =============================================================================
# Rating Engine Errors (HTTP 500)
# =============================================================================


class RatingEngineError(PadelRankError):
    """Base class for rating calculation errors."""

    pass


class RatingCalculationError(RatingEngineError):
    """Raised when rating calculation fails due to invalid data."""

    def __init__(self, message: str, player_id: int | None = None) -> None:
        details = {"player_id": player_id} if player_id else {}
        super().__init__(message=message, details=details)


class VolatilityConvergenceError(RatingEngineError):
    """Raised when the volatility root-find exceeds its iteration ceiling."""

    def __init__(self, iterations: int, gap: float) -> None:
        super().__init__(
            message=f"Volatility solve did not converge after {iterations} "
            f"iterations (bracket width {gap:.3e})",
            details={"iterations": iterations, "gap": gap},
        )

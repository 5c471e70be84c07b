# src/padelrank/schemas/__init__.py

"""Pydantic schemas for API validation and serialization."""

from .common import RatingInfo
from .confirmation import (
    ConfirmationCreate,
    ConfirmationEligibilityRead,
    ConfirmationRead,
    ConfirmationResultRead,
    ConfirmationSummaryRead,
    RejectionCreate,
)
from .match import (
    MatchBase,
    MatchCreate,
    MatchRead,
    MatchResultCreate,
    RatingChangeRead,
    SetScore,
    ValidationStatusesRead,
    ValidationStatusesRequest,
    ValidationWindowRead,
)
from .player import PlayerBase, PlayerCreate, PlayerRead
from .processor import ProcessorRunRead, ProcessorStatsRead
from .report import (
    EligibilityRead,
    ReportCreate,
    ReportingSnapshotRead,
    ReportRead,
    ReportSubmitRead,
)

__all__ = [
    # Common
    "RatingInfo",
    # Confirmation
    "ConfirmationCreate",
    "ConfirmationEligibilityRead",
    "ConfirmationRead",
    "ConfirmationResultRead",
    "ConfirmationSummaryRead",
    "RejectionCreate",
    # Match
    "MatchBase",
    "MatchCreate",
    "MatchRead",
    "MatchResultCreate",
    "RatingChangeRead",
    "SetScore",
    "ValidationStatusesRead",
    "ValidationStatusesRequest",
    "ValidationWindowRead",
    # Player
    "PlayerBase",
    "PlayerCreate",
    "PlayerRead",
    # Processor
    "ProcessorRunRead",
    "ProcessorStatsRead",
    # Report
    "EligibilityRead",
    "ReportCreate",
    "ReportingSnapshotRead",
    "ReportRead",
    "ReportSubmitRead",
]

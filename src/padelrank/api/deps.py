# src/padelrank/api/deps.py

"""Shared FastAPI dependencies for the validation endpoints."""

from functools import lru_cache

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from padelrank.clock import Clock, SystemClock
from padelrank.config import ValidationConfig
from padelrank.db.session import get_db
from padelrank.repositories.sqlalchemy_store import SqlAlchemyValidationStore
from padelrank.services.confirmation_service import MatchConfirmationService
from padelrank.services.reporting_service import MatchReportingService
from padelrank.services.validation_processor import BackgroundValidationProcessor


@lru_cache
def get_config() -> ValidationConfig:
    """Validation settings, read from the environment once."""
    return ValidationConfig.from_env()


def get_clock() -> Clock:
    return SystemClock()


async def get_reporting_service(
    db: AsyncSession = Depends(get_db),
    config: ValidationConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> MatchReportingService:
    """A reporting service bound to the request's database session."""
    return MatchReportingService(SqlAlchemyValidationStore(db), config, clock)


async def get_confirmation_service(
    db: AsyncSession = Depends(get_db),
    config: ValidationConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> MatchConfirmationService:
    """A confirmation service bound to the request's database session."""
    return MatchConfirmationService(SqlAlchemyValidationStore(db), config, clock)


def get_processor(request: Request) -> BackgroundValidationProcessor:
    processor = getattr(request.app.state, "processor", None)
    if processor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Validation processor is not configured",
        )
    return processor

# src/padelrank/schemas/processor.py

"""Pydantic schemas for the background validation processor."""

from datetime import datetime

from pydantic import BaseModel, Field


class ProcessorStatsRead(BaseModel):
    """Run statistics and health of the validation processor."""

    total_processed: int
    total_succeeded: int
    total_failed: int
    last_processed_at: datetime | None = None
    last_success_at: datetime | None = None
    consecutive_failures: int
    is_active: bool
    is_processing: bool
    is_healthy: bool
    success_rate: float = Field(..., ge=0, le=100, description="Percent of items succeeded")
    next_processing_estimate: datetime | None = None
    errors: list[str] = Field(default_factory=list, description="Most recent first")


class ProcessorRunRead(BaseModel):
    """Result of a manual processor trigger."""

    completed: bool
    stats: ProcessorStatsRead

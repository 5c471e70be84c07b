# src/padelrank/api/processor.py

"""API endpoints for monitoring and driving the validation processor."""

import dataclasses

from fastapi import APIRouter, Depends

from padelrank.api.deps import get_processor
from padelrank.schemas import processor as processor_schema
from padelrank.services.validation_processor import BackgroundValidationProcessor

router = APIRouter(prefix="/processor", tags=["Processor"])


def _stats(processor: BackgroundValidationProcessor) -> processor_schema.ProcessorStatsRead:
    return processor_schema.ProcessorStatsRead(**dataclasses.asdict(processor.snapshot()))


@router.get("/stats", response_model=processor_schema.ProcessorStatsRead)
async def read_stats(
    processor: BackgroundValidationProcessor = Depends(get_processor),
) -> processor_schema.ProcessorStatsRead:
    """Run statistics, error log and health of the processor."""
    return _stats(processor)


@router.post("/run", response_model=processor_schema.ProcessorRunRead)
async def run_now(
    processor: BackgroundValidationProcessor = Depends(get_processor),
) -> processor_schema.ProcessorRunRead:
    """
    Run one validation batch now.

    `completed` is false when a run was already in flight, the processor
    is suspended, or the batch ended with failures.
    """
    completed = await processor.process_now()
    return processor_schema.ProcessorRunRead(
        completed=completed, stats=_stats(processor)
    )


@router.post("/resume", response_model=processor_schema.ProcessorStatsRead)
async def resume(
    processor: BackgroundValidationProcessor = Depends(get_processor),
) -> processor_schema.ProcessorStatsRead:
    """Clear a suspension and restart the recurring loop."""
    await processor.resume()
    return _stats(processor)


@router.post("/reset-stats", response_model=processor_schema.ProcessorStatsRead)
async def reset_stats(
    processor: BackgroundValidationProcessor = Depends(get_processor),
) -> processor_schema.ProcessorStatsRead:
    """Zero the run statistics and error log."""
    processor.reset_stats()
    return _stats(processor)

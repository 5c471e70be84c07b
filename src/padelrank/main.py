# src/padelrank/main.py

"""Main FastAPI application for PadelRank."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .api import match, player, processor
from .api.deps import get_config
from .config import processor_enabled
from .db.session import AsyncSessionLocal, engine
from .exceptions import (
    ConflictError,
    PadelRankError,
    RatingEngineError,
    ResourceNotFoundError,
    ValidationError,
)
from .middleware.logging import RequestLoggingMiddleware
from .repositories.sqlalchemy_store import session_store_factory
from .services.validation_processor import BackgroundValidationProcessor
from .services.validation_service import MatchValidationService

logger = logging.getLogger(__name__)


def build_processor() -> BackgroundValidationProcessor:
    """Wires the validation processor to the application database."""
    config = get_config()
    service = MatchValidationService(session_store_factory(AsyncSessionLocal), config)
    return BackgroundValidationProcessor(service, config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown events."""
    app.state.processor = build_processor()
    if processor_enabled():
        app.state.processor.start()
    else:
        logger.info("Validation processor disabled by configuration")

    yield

    await app.state.processor.stop()
    # Shutdown: Dispose of database connections gracefully
    await engine.dispose()


app = FastAPI(title="PadelRank API", lifespan=lifespan)

# Add middleware (order matters - first added = outermost)
app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Global Exception Handlers
# =============================================================================


@app.exception_handler(ResourceNotFoundError)
async def resource_not_found_handler(
    request: Request, exc: ResourceNotFoundError
) -> JSONResponse:
    """Handle all resource not found errors -> 404."""
    logger.warning("Resource not found: %s", exc.message, extra=exc.details)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.message, "error_type": type(exc).__name__},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """Handle all validation errors -> 422."""
    logger.warning("Validation error: %s", exc.message, extra=exc.details)
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "error_type": type(exc).__name__},
    )


@app.exception_handler(ConflictError)
async def conflict_error_handler(request: Request, exc: ConflictError) -> JSONResponse:
    """Handle unique-constraint style conflicts -> 409."""
    logger.warning("Conflict: %s", exc.message, extra=exc.details)
    return JSONResponse(
        status_code=409,
        content={"detail": exc.message, "error_type": type(exc).__name__},
    )


@app.exception_handler(RatingEngineError)
async def rating_engine_error_handler(
    request: Request, exc: RatingEngineError
) -> JSONResponse:
    """Handle rating engine errors -> 500."""
    logger.error(
        "Rating engine error: %s", exc.message, extra=exc.details, exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Rating calculation failed",
            "error_type": type(exc).__name__,
        },
    )


@app.exception_handler(PadelRankError)
async def padelrank_error_handler(
    request: Request, exc: PadelRankError
) -> JSONResponse:
    """Catch-all for any other PadelRank errors -> 500."""
    logger.error("PadelRank error: %s", exc.message, extra=exc.details, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": exc.message, "error_type": type(exc).__name__},
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(
    request: Request, exc: IntegrityError
) -> JSONResponse:
    """Handle database integrity constraint violations."""
    error_msg = str(exc.orig) if exc.orig else str(exc)
    logger.warning("Database integrity error: %s", error_msg)

    # Unique constraint violations -> 409 Conflict
    if "UNIQUE constraint failed" in error_msg or "duplicate key" in error_msg:
        return JSONResponse(
            status_code=409,
            content={"detail": "Resource already exists with given unique field(s)"},
        )

    # Foreign key violations -> 400 Bad Request
    fk_error = "FOREIGN KEY constraint failed" in error_msg
    if fk_error or "violates foreign key" in error_msg:
        return JSONResponse(
            status_code=400,
            content={"detail": "Referenced resource does not exist"},
        )

    return JSONResponse(
        status_code=400,
        content={"detail": "Database constraint violation"},
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_error_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """Catch-all for other SQLAlchemy database errors."""
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal database error occurred"},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred"},
    )


# Include routers into the main application
app.include_router(player.router)
app.include_router(match.router)
app.include_router(processor.router)


@app.get("/", tags=["Root"])
async def read_root() -> dict[str, str]:
    """Provides a welcome message."""
    return {"message": "Welcome to the PadelRank API"}


@app.get("/health", tags=["Health"])
async def health_check(request: Request) -> dict:
    """Health check endpoint for monitoring.

    Reports `degraded` while the validation processor is suspended.
    """
    validation_processor = getattr(request.app.state, "processor", None)
    if validation_processor is None:
        return {"status": "healthy", "processor": None}

    return {
        "status": "healthy" if validation_processor.is_healthy else "degraded",
        "processor": {
            "is_active": validation_processor.is_active,
            "is_healthy": validation_processor.is_healthy,
            "consecutive_failures": validation_processor.consecutive_failures,
        },
    }

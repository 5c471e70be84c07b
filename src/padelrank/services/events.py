# src/padelrank/services/events.py

"""Optional push channel for validation status changes.

Services call the sink after a transition has been committed. The default
sink does nothing; a notification layer can plug in its own.
"""

import logging
from typing import Protocol

from padelrank.db.models import ValidationStatus

logger = logging.getLogger(__name__)


class ValidationEventSink(Protocol):
    async def validation_status_changed(
        self, match_id: int, old: ValidationStatus, new: ValidationStatus
    ) -> None:
        ...


class NullEventSink:
    """Discards every event."""

    async def validation_status_changed(
        self, match_id: int, old: ValidationStatus, new: ValidationStatus
    ) -> None:
        return None


async def publish_status_change(
    sink: ValidationEventSink,
    match_id: int,
    old: ValidationStatus,
    new: ValidationStatus,
) -> None:
    """Delivers an event; a failing sink never undoes a committed transition."""
    try:
        await sink.validation_status_changed(match_id, old, new)
    except Exception:
        logger.warning(
            "Validation event delivery failed",
            extra={"match_id": match_id, "old": old.value, "new": new.value},
            exc_info=True,
        )

"""Health reporting and fire-and-forget export audit logging."""

import logging
from datetime import datetime, timezone
from typing import Callable

logger = logging.getLogger(__name__)


def health_check(message: str = "voicecast is healthy") -> dict:
    return {
        "success": True,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _log_sink(event: dict) -> None:
    logger.info(
        "Export: %s - %s (%s opportunities)",
        event["type"], event["filename"], event["opportunityCount"],
    )


def log_export(
    export_type: str,
    filename: str,
    opportunity_count: int,
    sink: Callable[[dict], None] | None = None,
) -> bool:
    """Deliver an export audit event to sink (default: this module's logger).

    Audit failures never propagate; returns False when the sink raised.
    """
    event = {"type": export_type, "filename": filename, "opportunityCount": opportunity_count}
    try:
        (sink or _log_sink)(event)
    except Exception as e:
        logger.warning("Export audit logging failed: %s", e)
        return False
    return True

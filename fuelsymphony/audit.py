from __future__ import annotations

import logging
from typing import Any

from fuelsymphony.errors import BackendError
from fuelsymphony.services.backend import BackendClient

logger = logging.getLogger("fuelsymphony.audit")


async def log_activity(
    client: BackendClient,
    *,
    actor_id: str,
    action: str,
    entity_type: str,
    entity_id: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> bool:
    try:
        result = await client.insert(
            "activity_logs",
            {
                "user_id": actor_id,
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "details": details or {},
            },
        )
    except BackendError:
        logger.exception(
            "activity_log_write_failed",
            extra={"request_id": request_id, "action": action, "actor_id": actor_id},
        )
        return False

    if not result.ok:
        logger.warning(
            "activity_log_write_failed",
            extra={
                "request_id": request_id,
                "action": action,
                "actor_id": actor_id,
                "error": result.error,
            },
        )
        return False

    logger.info(
        "activity_event",
        extra={
            "request_id": request_id,
            "action": action,
            "actor_id": actor_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "details": details or {},
        },
    )
    return True

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from fuelsymphony.services.backend import BackendClient, QueryResult, table

logger = logging.getLogger("fuelsymphony.connection_gate")

PROBE_TABLE = "profiles"

GateState = Literal["checking", "ready"]


@dataclass(frozen=True, slots=True)
class GateOutcome:
    state: GateState
    error: str | None = None
    checked_at_utc: datetime | None = None
    row_count: int | None = None

    @property
    def degraded(self) -> bool:
        return self.state == "ready" and self.error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "error": self.error,
            "degraded": self.degraded,
            "checked_at_utc": self.checked_at_utc.isoformat() if self.checked_at_utc else None,
            "row_count": self.row_count,
        }


class ConnectionGate:
    """Boot-time reachability probe.

    The gate always ends in ``ready``; a failed probe is recorded so the
    layout can show a passive warning while the rest of the app keeps
    serving.
    """

    def __init__(self, client: BackendClient, *, probe_table: str = PROBE_TABLE) -> None:
        self._client = client
        self._probe_table = probe_table
        self._outcome = GateOutcome(state="checking")
        self._lock = asyncio.Lock()

    @property
    def outcome(self) -> GateOutcome:
        return self._outcome

    @property
    def state(self) -> GateState:
        return self._outcome.state

    @property
    def error(self) -> str | None:
        return self._outcome.error

    async def run(self) -> GateOutcome:
        async with self._lock:
            if self._outcome.state == "ready":
                return self._outcome

            try:
                result: QueryResult[Any] = await self._client.execute(table(self._probe_table).count())
            except Exception as exc:
                result = QueryResult.failure(str(exc) or exc.__class__.__name__)

            checked_at = datetime.now(timezone.utc)
            if result.ok:
                self._outcome = GateOutcome(state="ready", checked_at_utc=checked_at, row_count=result.count)
                logger.info(
                    "backend_connection_ready",
                    extra={"backend": self._client.name, "probe_table": self._probe_table},
                )
            else:
                self._outcome = GateOutcome(state="ready", error=result.error, checked_at_utc=checked_at)
                logger.warning(
                    "backend_connection_failed",
                    extra={
                        "backend": self._client.name,
                        "probe_table": self._probe_table,
                        "error": result.error,
                    },
                )
            return self._outcome

#!/usr/bin/env python
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any

from fuelsymphony.errors import BackendError
from fuelsymphony.models import Base
from fuelsymphony.services.backend import BackendClient, create_backend_client, table
from fuelsymphony.services.connection_gate import ConnectionGate
from fuelsymphony.settings import get_settings


async def probe(client: BackendClient) -> dict[str, Any]:
    gate = ConnectionGate(client)
    outcome = await gate.run()
    report: dict[str, Any] = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "backend": client.name,
        "connection": outcome.to_dict(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict[str, Any]) -> None:
        report["checks"].append(
            {
                "name": name,
                "status": status,
                "details": details,
            }
        )

    for table_name in sorted(Base.metadata.tables):
        try:
            result = await client.execute(table(table_name).count())
        except BackendError as exc:
            add(table_name, "fail", {"error": str(exc) or exc.__class__.__name__})
            continue
        if result.ok:
            add(table_name, "ok", {"rows": result.count})
        else:
            add(table_name, "fail", {"error": result.error})

    return report


async def run() -> dict[str, Any]:
    settings = get_settings()
    client = create_backend_client(settings)
    try:
        return await probe(client)
    finally:
        await client.aclose()


if __name__ == "__main__":
    print(json.dumps(asyncio.run(run()), ensure_ascii=False, indent=2))

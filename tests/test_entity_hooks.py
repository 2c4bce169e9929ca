from __future__ import annotations

import unittest
from datetime import date
from typing import Any, Mapping, Sequence

from fuelsymphony.schemas import ActivityLog, FuelInventory, Station
from fuelsymphony.services.backend import SINGLE_ROW_ERROR, BackendClient, Filter, Order, Query, QueryResult
from fuelsymphony.services.entity_hooks import (
    use_activity_logs,
    use_employees,
    use_fuel_inventory,
    use_meter_readings,
    use_profiles,
    use_station,
    use_station_expenses,
    use_stations,
)
from fuelsymphony.services.notifications import Notifier

CREATED = "2024-03-01T08:00:00+00:00"


def _station_row(station_id: str, name: str) -> dict[str, Any]:
    return {
        "id": station_id,
        "name": name,
        "address": "1 Depot Road",
        "city": "Springfield",
        "state": "IL",
        "zip": "62701",
        "phone": "555-0100",
        "email": "depot@example.com",
        "status": "active",
        "created_at": CREATED,
        "updated_at": CREATED,
    }


class _RecordingBackend(BackendClient):
    name = "fake"

    def __init__(self, responses: Mapping[str, QueryResult[Any]] | None = None) -> None:
        self.responses = dict(responses or {})
        self.queries: list[Query] = []

    async def execute(self, query: Query) -> QueryResult[Any]:
        self.queries.append(query)
        return self.responses.get(query.table, QueryResult.success([]))

    async def insert(
        self,
        table_name: str,
        values: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> QueryResult[list[dict[str, Any]]]:
        raise AssertionError("hooks never write")

    async def update(self, query: Query, values: Mapping[str, Any]) -> QueryResult[list[dict[str, Any]]]:
        raise AssertionError("hooks never write")

    async def delete(self, query: Query) -> QueryResult[None]:
        raise AssertionError("hooks never write")

    async def invoke(self, function_name: str, payload: Mapping[str, Any] | None = None) -> QueryResult[Any]:
        raise AssertionError("hooks never invoke functions")

    async def sign_in(self, email: str, password: str) -> QueryResult[dict[str, Any]]:
        raise AssertionError("hooks never sign in")


class EntityHookTests(unittest.IsolatedAsyncioTestCase):
    async def test_stations_are_read_ordered_by_name_and_validated(self) -> None:
        backend = _RecordingBackend(
            {"stations": QueryResult.success([_station_row("s1", "Airport"), _station_row("s2", "Harbor")])}
        )
        notifier = Notifier()

        hook = use_stations(backend, notifier=notifier)
        state = await hook.settled()

        self.assertEqual(backend.queries[0].table, "stations")
        self.assertEqual(backend.queries[0].order_by, (Order("name", False),))
        self.assertEqual([item.name for item in state.data or []], ["Airport", "Harbor"])
        self.assertIsInstance((state.data or [])[0], Station)
        self.assertEqual(notifier.items, [])

    async def test_station_without_id_makes_no_backend_call(self) -> None:
        backend = _RecordingBackend()
        notifier = Notifier()

        for missing in (None, ""):
            hook = use_station(backend, missing, notifier=notifier)
            state = await hook.settled()
            self.assertIsNone(state.data)
            self.assertFalse(state.loading)
            self.assertIsNone(state.error)

        self.assertEqual(backend.queries, [])
        self.assertEqual(notifier.items, [])

    async def test_unknown_station_id_reports_single_row_error(self) -> None:
        backend = _RecordingBackend({"stations": QueryResult.failure(SINGLE_ROW_ERROR)})
        notifier = Notifier()

        hook = use_station(backend, "missing", notifier=notifier)
        state = await hook.settled()

        query = backend.queries[0]
        self.assertTrue(query.single_row)
        self.assertEqual(query.filters, (Filter("id", "eq", "missing"),))
        self.assertIsNone(state.data)
        self.assertEqual(state.error, SINGLE_ROW_ERROR)
        self.assertEqual([item.message for item in notifier.items], [f"Failed to load station: {SINGLE_ROW_ERROR}"])

    async def test_employees_are_scoped_to_station_and_role(self) -> None:
        backend = _RecordingBackend()
        notifier = Notifier()

        await use_employees(backend, "s1", notifier=notifier).settled()

        self.assertEqual(
            backend.queries[0].filters,
            (Filter("role", "eq", "Employee"), Filter("station_id", "eq", "s1")),
        )

    async def test_fuel_inventory_marks_low_stock(self) -> None:
        row = {
            "id": "f1",
            "station_id": "s1",
            "fuel_type": "Diesel",
            "current_stock": 400.0,
            "capacity": 10000.0,
            "alert_threshold": 500.0,
            "price_per_liter": 1.65,
            "cost_per_liter": 1.4,
            "created_at": CREATED,
            "updated_at": CREATED,
        }
        backend = _RecordingBackend({"fuel_inventory": QueryResult.success([row])})

        state = await use_fuel_inventory(backend, "s1", notifier=Notifier()).settled()

        tank = (state.data or [])[0]
        self.assertIsInstance(tank, FuelInventory)
        self.assertTrue(tank.is_low)

    async def test_malformed_rows_surface_as_hook_error(self) -> None:
        backend = _RecordingBackend({"stations": QueryResult.success([{"id": "s1"}])})
        notifier = Notifier()

        state = await use_stations(backend, notifier=notifier).settled()

        self.assertIsNone(state.data)
        self.assertIsNotNone(state.error)
        self.assertEqual(len(notifier.items), 1)

    async def test_nullable_station_columns_are_accepted(self) -> None:
        row = {**_station_row("s3", "Quarry"), "phone": None, "email": None, "zip": None, "updated_at": None}
        backend = _RecordingBackend({"stations": QueryResult.success([row])})
        notifier = Notifier()

        state = await use_stations(backend, notifier=notifier).settled()

        self.assertIsNone(state.error)
        station = (state.data or [])[0]
        self.assertEqual(station.phone, "")
        self.assertEqual(station.zip, "")
        self.assertIsNone(station.updated_at)
        self.assertEqual(notifier.items, [])

    async def test_expenses_need_a_complete_date_range(self) -> None:
        backend = _RecordingBackend()
        notifier = Notifier()

        await use_station_expenses(backend, "s1", date(2024, 3, 1), None, notifier=notifier).settled()
        self.assertEqual(backend.queries, [])

        await use_station_expenses(backend, "s1", date(2024, 3, 1), date(2024, 3, 31), notifier=notifier).settled()
        self.assertEqual(
            backend.queries[0].filters,
            (
                Filter("station_id", "eq", "s1"),
                Filter("date", "gte", date(2024, 3, 1)),
                Filter("date", "lte", date(2024, 3, 31)),
            ),
        )

    async def test_activity_logs_filter_and_limit(self) -> None:
        row = {
            "id": "l1",
            "user_id": "p1",
            "action": "STATION_CREATE",
            "entity_type": "station",
            "entity_id": "s1",
            "details": {},
            "created_at": CREATED,
        }
        backend = _RecordingBackend({"activity_logs": QueryResult.success([row])})

        state = await use_activity_logs(backend, notifier=Notifier(), entity_type="station", limit=25).settled()

        query = backend.queries[0]
        self.assertEqual(query.filters, (Filter("entity_type", "eq", "station"),))
        self.assertEqual(query.order_by, (Order("created_at", True),))
        self.assertEqual(query.limit_rows, 25)
        self.assertIsInstance((state.data or [])[0], ActivityLog)

    async def test_profiles_are_read_unfiltered_by_full_name(self) -> None:
        backend = _RecordingBackend()

        state = await use_profiles(backend, notifier=Notifier()).settled()

        query = backend.queries[0]
        self.assertEqual(query.table, "profiles")
        self.assertEqual(query.filters, ())
        self.assertEqual(query.order_by, (Order("full_name", False),))
        self.assertEqual(state.data, [])

    async def test_meter_readings_wait_for_a_shift(self) -> None:
        backend = _RecordingBackend()
        notifier = Notifier()

        await use_meter_readings(backend, None, notifier=notifier).settled()
        self.assertEqual(backend.queries, [])

        await use_meter_readings(backend, "sh1", notifier=notifier).settled()
        self.assertEqual(backend.queries[0].filters, (Filter("shift_id", "eq", "sh1"),))


if __name__ == "__main__":
    unittest.main()

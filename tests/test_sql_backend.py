from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from fuelsymphony.db import create_db_engine
from fuelsymphony.models import Base
from fuelsymphony.services.backend import SINGLE_ROW_ERROR, SqlBackendClient, table


class SqlBackendClientTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        engine = create_db_engine(f"sqlite:///{Path(self._tmp.name) / 'fuel.db'}")
        Base.metadata.create_all(engine)
        self.client = SqlBackendClient(engine)

    async def asyncTearDown(self) -> None:
        await self.client.aclose()
        self._tmp.cleanup()

    async def _seed_stations(self) -> list[dict]:
        result = await self.client.insert(
            "stations",
            [
                {"name": "Harbor", "city": "Portland", "status": "active"},
                {"name": "Airport", "city": "Portland", "status": "inactive"},
                {"name": "Midtown", "city": "Salem", "status": "active"},
            ],
        )
        self.assertTrue(result.ok, result.error)
        return result.data or []

    async def test_insert_returns_rows_with_generated_fields(self) -> None:
        rows = await self._seed_stations()

        self.assertEqual(len(rows), 3)
        self.assertTrue(all(row["id"] for row in rows))
        self.assertIsNotNone(rows[0]["created_at"])

    async def test_select_filters_orders_and_limits(self) -> None:
        await self._seed_stations()

        result = await self.client.execute(
            table("stations").select("name, city").eq("city", "Portland").order("name").limit(5)
        )

        self.assertEqual(result.data, [{"name": "Airport", "city": "Portland"}, {"name": "Harbor", "city": "Portland"}])

    async def test_in_and_descending_order(self) -> None:
        await self._seed_stations()

        result = await self.client.execute(
            table("stations").select("name").in_("name", ["Harbor", "Midtown"]).order("name", descending=True)
        )

        self.assertEqual([row["name"] for row in result.data], ["Midtown", "Harbor"])

    async def test_single_row_requires_exactly_one_match(self) -> None:
        rows = await self._seed_stations()

        found = await self.client.execute(table("stations").eq("id", rows[0]["id"]).single())
        missing = await self.client.execute(table("stations").eq("id", "missing").single())
        several = await self.client.execute(table("stations").eq("city", "Portland").single())

        self.assertEqual(found.data["name"], "Harbor")
        self.assertEqual(missing.error, SINGLE_ROW_ERROR)
        self.assertEqual(several.error, SINGLE_ROW_ERROR)

    async def test_count_only(self) -> None:
        await self._seed_stations()

        result = await self.client.execute(table("stations").eq("status", "active").count())

        self.assertIsNone(result.data)
        self.assertEqual(result.count, 2)

    async def test_is_null_filter(self) -> None:
        await self.client.insert(
            "profiles",
            [
                {"user_id": "u1", "full_name": "Root", "role": "Super Admin", "station_id": None},
                {"user_id": "u2", "full_name": "Ana", "role": "Admin", "station_id": "s1"},
            ],
        )

        result = await self.client.execute(table("profiles").select("full_name").eq("station_id", None))

        self.assertEqual(result.data, [{"full_name": "Root"}])

    async def test_update_returns_changed_rows(self) -> None:
        rows = await self._seed_stations()

        result = await self.client.update(table("stations").eq("id", rows[1]["id"]), {"status": "active"})

        self.assertEqual(len(result.data), 1)
        self.assertEqual(result.data[0]["status"], "active")

    async def test_delete_removes_rows(self) -> None:
        rows = await self._seed_stations()

        deleted = await self.client.delete(table("stations").eq("id", rows[0]["id"]))
        remaining = await self.client.execute(table("stations").count())

        self.assertTrue(deleted.ok)
        self.assertIsNone(deleted.data)
        self.assertEqual(remaining.count, 2)

    async def test_unknown_relation_and_column_are_failures(self) -> None:
        unknown_table = await self.client.execute(table("pumps"))
        unknown_column = await self.client.execute(table("stations").eq("brand", "x"))

        self.assertEqual(unknown_table.error, 'relation "public.pumps" does not exist')
        self.assertEqual(unknown_column.error, "column stations.brand does not exist")

    async def test_constraint_violation_is_a_failure(self) -> None:
        result = await self.client.insert("stations", {"city": "Nowhere"})

        self.assertFalse(result.ok)
        self.assertIsNone(result.data)

    async def test_remote_features_are_unavailable(self) -> None:
        invoked = await self.client.invoke("create-test-users")
        signed_in = await self.client.sign_in("a@example.com", "x")

        self.assertFalse(invoked.ok)
        self.assertFalse(signed_in.ok)


if __name__ == "__main__":
    unittest.main()

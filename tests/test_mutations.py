from __future__ import annotations

import tempfile
import unittest
from datetime import date
from pathlib import Path

from fuelsymphony.db import create_db_engine
from fuelsymphony.models import Base
from fuelsymphony.schemas import (
    ExpenseWrite,
    FuelInventoryWrite,
    InvoiceLineWrite,
    InvoiceWrite,
    LineItemWrite,
    MeterReadingClose,
    MeterReadingOpen,
    ProfileWrite,
    ShiftEndRequest,
    ShiftStartRequest,
    StationWrite,
    TransactionWrite,
    VehicleWrite,
)
from fuelsymphony.services import mutations
from fuelsymphony.services.backend import SINGLE_ROW_ERROR, SqlBackendClient, table
from fuelsymphony.services.mutations import MutationContext, line_total
from fuelsymphony.services.notifications import Notifier


class MutationTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        engine = create_db_engine(f"sqlite:///{Path(self._tmp.name) / 'fuel.db'}")
        Base.metadata.create_all(engine)
        self.client = SqlBackendClient(engine)
        self.notifier = Notifier()
        self.ctx = MutationContext(client=self.client, notifier=self.notifier, actor_id="p-admin", request_id="req-1")

    async def asyncTearDown(self) -> None:
        await self.client.aclose()
        self._tmp.cleanup()

    def _messages(self) -> list[str]:
        return [item.message for item in self.notifier.drain()]

    async def _activity_actions(self) -> list[str]:
        result = await self.client.execute(table("activity_logs").select("action"))
        return sorted(row["action"] for row in result.data or [])

    async def _start_shift(self) -> str:
        result = await mutations.start_shift(
            self.ctx,
            ShiftStartRequest(station_id="s1", employee_id="p-emp", dispensers=["d1"], starting_cash=100),
        )
        self.assertTrue(result.ok, result.error)
        self.notifier.drain()
        return result.data.id

    async def test_create_station_notifies_and_records_activity(self) -> None:
        result = await mutations.create_station(self.ctx, StationWrite(name="Harbor", city="Portland"))

        self.assertTrue(result.ok)
        self.assertEqual(result.data.name, "Harbor")
        self.assertEqual(result.data.status, "active")
        self.assertEqual(self._messages(), ["Station created successfully"])
        self.assertEqual(await self._activity_actions(), ["STATION_CREATE"])

    async def test_update_of_missing_station_is_reported(self) -> None:
        result = await mutations.update_station(self.ctx, "missing", StationWrite(name="Harbor"))

        self.assertEqual(result.error, "Station not found")
        self.assertEqual(self._messages(), ["Failed to update station: Station not found"])
        self.assertEqual(await self._activity_actions(), [])

    async def test_unknown_role_is_never_written(self) -> None:
        payload = ProfileWrite(user_id="u9", full_name="Pat Doe", role="Manager")

        result = await mutations.create_profile(self.ctx, payload)
        count = await self.client.execute(table("profiles").count())

        self.assertFalse(result.ok)
        self.assertEqual(self._messages(), ["Failed to create profile: Unrecognized role: Manager"])
        self.assertEqual(count.count, 0)

    async def test_profile_status_update(self) -> None:
        created = await mutations.create_profile(
            self.ctx,
            ProfileWrite(user_id="u2", full_name="Ana Silva", role="Employee", station_id="s1"),
        )

        result = await mutations.update_profile_status(self.ctx, created.data.id, "inactive")

        self.assertEqual(result.data.status, "inactive")
        self.assertEqual(await self._activity_actions(), ["PROFILE_CREATE", "PROFILE_STATUS_UPDATE"])

    async def test_end_shift_completes_active_shift(self) -> None:
        shift_id = await self._start_shift()

        result = await mutations.end_shift(self.ctx, shift_id, ShiftEndRequest(ending_cash=450.5, notes="quiet day"))

        self.assertTrue(result.ok, result.error)
        self.assertEqual(result.data.status, "completed")
        self.assertEqual(result.data.ending_cash, 450.5)
        self.assertEqual(result.data.notes, "quiet day")
        self.assertIsNotNone(result.data.end_time)
        self.assertEqual(self._messages(), ["Shift ended successfully"])

    async def test_closed_shift_cannot_be_closed_again(self) -> None:
        shift_id = await self._start_shift()
        await mutations.end_shift(self.ctx, shift_id, ShiftEndRequest(ending_cash=10))
        self.notifier.drain()

        ended_again = await mutations.end_shift(self.ctx, shift_id, ShiftEndRequest(ending_cash=20))
        cancelled = await mutations.cancel_shift(self.ctx, shift_id)

        self.assertEqual(ended_again.error, "Shift is completed, only active shifts can be closed")
        self.assertFalse(cancelled.ok)
        self.assertEqual(
            self._messages(),
            [
                "Failed to end shift: Shift is completed, only active shifts can be closed",
                "Failed to cancel shift: Shift is completed, only active shifts can be closed",
            ],
        )
        stored = await self.client.execute(table("shifts").eq("id", shift_id).single())
        self.assertEqual(stored.data["ending_cash"], 10)

    async def test_closing_unknown_shift_reports_backend_error(self) -> None:
        result = await mutations.cancel_shift(self.ctx, "missing")

        self.assertEqual(result.error, SINGLE_ROW_ERROR)

    async def test_meter_reading_cannot_run_backwards(self) -> None:
        shift_id = await self._start_shift()
        opened = await mutations.open_meter_reading(
            self.ctx,
            shift_id,
            MeterReadingOpen(dispenser_id="d1", fuel_type="Diesel", start_reading=1500),
        )
        self.notifier.drain()

        rejected = await mutations.close_meter_reading(self.ctx, opened.data.id, MeterReadingClose(end_reading=1400))
        closed = await mutations.close_meter_reading(self.ctx, opened.data.id, MeterReadingClose(end_reading=1620))

        self.assertEqual(rejected.error, "End reading cannot be lower than the start reading")
        self.assertEqual(closed.data.end_reading, 1620)

    async def test_restock_fuel_adds_to_current_stock(self) -> None:
        seeded = await self.client.insert(
            "fuel_inventory",
            {
                "station_id": "s1",
                "fuel_type": "Diesel",
                "current_stock": 1000,
                "capacity": 10000,
                "alert_threshold": 500,
                "price_per_liter": 1.65,
                "cost_per_liter": 1.4,
            },
        )

        result = await mutations.restock_fuel(self.ctx, seeded.data[0]["id"], 500)
        missing = await mutations.restock_fuel(self.ctx, "missing", 500)

        self.assertEqual(result.data.current_stock, 1500)
        self.assertFalse(result.data.is_low)
        self.assertEqual(missing.error, SINGLE_ROW_ERROR)

    async def test_invoice_total_applies_discount_and_tax(self) -> None:
        payload = InvoiceWrite(
            customer_id="c1",
            station_id="s1",
            invoice_number="INV-001",
            issue_date=date(2024, 3, 1),
            due_date=date(2024, 3, 31),
            discount=5,
            tax=2,
            items=[
                InvoiceLineWrite(description="Diesel", quantity=2, unit_price=10),
                InvoiceLineWrite(description="Car wash", quantity=1, unit_price=5),
            ],
        )

        result = await mutations.create_invoice(self.ctx, payload)
        items = await self.client.execute(table("invoice_items").eq("invoice_id", result.data.id).order("total_price"))

        self.assertEqual(result.data.total_amount, 22.0)
        self.assertEqual(result.data.status, "unpaid")
        self.assertEqual([row["total_price"] for row in items.data], [5.0, 20.0])

    async def test_invoice_due_date_cannot_precede_issue_date(self) -> None:
        payload = InvoiceWrite(
            customer_id="c1",
            station_id="s1",
            invoice_number="INV-002",
            issue_date=date(2024, 3, 10),
            due_date=date(2024, 3, 1),
            items=[InvoiceLineWrite(description="Diesel", quantity=1, unit_price=10)],
        )

        result = await mutations.create_invoice(self.ctx, payload)
        count = await self.client.execute(table("invoices").count())

        self.assertFalse(result.ok)
        self.assertEqual(count.count, 0)

    async def test_transaction_total_is_sum_of_lines(self) -> None:
        payload = TransactionWrite(
            station_id="s1",
            shift_id="sh1",
            payment_method="Credit Card",
            items=[
                LineItemWrite(item_type="fuel", item_id="f1", quantity=20, unit_price=1.65),
                LineItemWrite(item_type="product", item_id="oil", quantity=2, unit_price=4.5),
            ],
        )

        result = await mutations.create_transaction(self.ctx, payload)
        lines = await self.client.execute(table("transaction_items").eq("transaction_id", result.data.id).count())

        self.assertAlmostEqual(result.data.total_amount, 42.0)
        self.assertEqual(result.data.payment_method, "credit_card")
        self.assertEqual(result.data.status, "completed")
        self.assertEqual(lines.count, 2)

    async def test_vehicle_delete_removes_row(self) -> None:
        created = await mutations.create_vehicle(
            self.ctx,
            VehicleWrite(customer_id="c1", make="Ford", model="Transit", year="2021", license_plate="FS-101", fuel_type="Diesel"),
        )

        result = await mutations.delete_vehicle(self.ctx, created.data.id)
        remaining = await self.client.execute(table("vehicles").count())

        self.assertTrue(result.ok)
        self.assertEqual(remaining.count, 0)
        self.assertEqual(await self._activity_actions(), ["VEHICLE_CREATE", "VEHICLE_DELETE"])

    async def test_shift_with_null_notes_can_be_ended(self) -> None:
        seeded = await self.client.insert(
            "shifts",
            {"station_id": "s1", "employee_id": "p-emp", "starting_cash": 80, "notes": None, "status": "active"},
        )
        shift_id = seeded.data[0]["id"]

        result = await mutations.end_shift(self.ctx, shift_id, ShiftEndRequest(ending_cash=120))

        self.assertTrue(result.ok, result.error)
        self.assertEqual(result.data.notes, "")
        self.assertEqual(result.data.status, "completed")
        self.assertEqual(self._messages(), ["Shift ended successfully"])

    async def test_station_with_null_contact_columns_is_read_back(self) -> None:
        await self.client.insert("stations", {"id": "s9", "name": "Ridge", "phone": None, "email": None})

        result = await mutations.update_station(self.ctx, "s9", StationWrite(name="Ridge North"))

        self.assertTrue(result.ok, result.error)
        self.assertEqual(result.data.name, "Ridge North")

    async def test_restock_beyond_capacity_is_rejected(self) -> None:
        seeded = await self.client.insert(
            "fuel_inventory",
            {
                "station_id": "s1",
                "fuel_type": "diesel",
                "current_stock": 9800,
                "capacity": 10000,
                "alert_threshold": 500,
                "price_per_liter": 1.65,
                "cost_per_liter": 1.4,
            },
        )
        inventory_id = seeded.data[0]["id"]

        result = await mutations.restock_fuel(self.ctx, inventory_id, 500)
        stored = await self.client.execute(table("fuel_inventory").eq("id", inventory_id).single())

        self.assertEqual(result.error, "Restock would exceed tank capacity of 10000 L")
        self.assertEqual(self._messages(), ["Failed to restock fuel: Restock would exceed tank capacity of 10000 L"])
        self.assertEqual(stored.data["current_stock"], 9800)
        self.assertEqual(await self._activity_actions(), [])

    async def test_fuel_inventory_is_created_once_per_fuel_type(self) -> None:
        payload = FuelInventoryWrite(
            station_id="s1",
            fuel_type="Petrol",
            current_stock=2000,
            capacity=15000,
            alert_threshold=1000,
            price_per_liter=1.8,
            cost_per_liter=1.55,
        )

        created = await mutations.create_fuel_inventory(self.ctx, payload)
        duplicate = await mutations.create_fuel_inventory(self.ctx, payload)

        self.assertTrue(created.ok, created.error)
        self.assertEqual(created.data.fuel_type, "petrol")
        self.assertEqual(duplicate.error, "petrol already exists in your inventory")
        self.assertEqual(
            self._messages(),
            ["Fuel inventory added successfully", "Failed to add fuel inventory: petrol already exists in your inventory"],
        )
        self.assertEqual(await self._activity_actions(), ["FUEL_INVENTORY_CREATE"])

    async def test_fuel_inventory_update_rewrites_prices(self) -> None:
        payload = FuelInventoryWrite(
            station_id="s1",
            fuel_type="diesel",
            current_stock=500,
            capacity=8000,
            alert_threshold=400,
            price_per_liter=1.6,
            cost_per_liter=1.3,
        )
        created = await mutations.create_fuel_inventory(self.ctx, payload)

        result = await mutations.update_fuel_inventory(
            self.ctx,
            created.data.id,
            payload.model_copy(update={"price_per_liter": 1.75}),
        )

        self.assertEqual(result.data.price_per_liter, 1.75)
        self.assertEqual(await self._activity_actions(), ["FUEL_INVENTORY_CREATE", "FUEL_INVENTORY_UPDATE"])

    async def test_expense_is_recorded_and_updated(self) -> None:
        payload = ExpenseWrite(station_id="s1", expense_type="Utilities", amount=240.5, date=date(2024, 3, 4))

        created = await mutations.create_expense(self.ctx, payload)
        updated = await mutations.update_expense(
            self.ctx,
            created.data.id,
            payload.model_copy(update={"amount": 260.0, "description": "March power bill"}),
        )

        self.assertEqual(created.data.expense_type, "utilities")
        self.assertEqual(created.data.description, "")
        self.assertEqual(updated.data.amount, 260.0)
        self.assertEqual(updated.data.description, "March power bill")
        self.assertEqual(self._messages(), ["Expense added successfully", "Expense updated successfully"])
        self.assertEqual(await self._activity_actions(), ["EXPENSE_CREATE", "EXPENSE_UPDATE"])

    def test_line_total_rounds_to_cents(self) -> None:
        self.assertEqual(line_total(3, 0.333), 1.0)
        self.assertEqual(line_total(1.5, 2.0), 3.0)


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import json
import logging
import unittest

from fuelsymphony.logging_utils import JsonFormatter, log_source


def _record(name: str, message: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(name, logging.WARNING, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class JsonFormatterTests(unittest.TestCase):
    def test_source_is_derived_from_logger_name(self) -> None:
        line = JsonFormatter().format(_record("fuelsymphony.mutations", "mutation_record_invalid", entity_type="shift"))

        payload = json.loads(line)
        self.assertEqual(payload["service"], "fuelsymphony")
        self.assertEqual(payload["source"], "mutations")
        self.assertEqual(payload["message"], "mutation_record_invalid")
        self.assertEqual(payload["entity_type"], "shift")
        self.assertEqual(payload["level"], "WARNING")

    def test_explicit_notification_source_wins(self) -> None:
        formatter = JsonFormatter(service="fuel-dashboard")

        named = json.loads(formatter.format(_record("fuelsymphony.notifications", "user_notification", source="inventory")))
        unnamed = json.loads(formatter.format(_record("fuelsymphony.notifications", "user_notification", source=None)))

        self.assertEqual(named["service"], "fuel-dashboard")
        self.assertEqual(named["source"], "inventory")
        self.assertEqual(unnamed["source"], "notifications")

    def test_secret_fields_are_redacted(self) -> None:
        line = JsonFormatter().format(
            _record("fuelsymphony.auth", "login_attempt", email="admin@fuel.test", password="Admin123!")
        )

        payload = json.loads(line)
        self.assertEqual(payload["password"], "[redacted]")
        self.assertEqual(payload["email"], "admin@fuel.test")
        self.assertNotIn("Admin123!", line)

    def test_foreign_logger_keeps_full_name(self) -> None:
        self.assertEqual(log_source("uvicorn.error"), "uvicorn.error")
        self.assertEqual(log_source("fuelsymphony.hooks"), "hooks")


if __name__ == "__main__":
    unittest.main()

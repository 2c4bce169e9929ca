from __future__ import annotations

import unittest
from typing import Any, Mapping, Sequence

from fuelsymphony.errors import BackendUnavailableError
from fuelsymphony.services.backend import BackendClient, Query, QueryResult
from fuelsymphony.services.notifications import Notifier
from fuelsymphony.services.provisioning import DEFAULT_FUNCTION_NAME, provision_test_users


class _FunctionBackend(BackendClient):
    name = "fake"

    def __init__(self, outcome: QueryResult[Any] | Exception) -> None:
        self.outcome = outcome
        self.invoked: list[str] = []

    async def invoke(self, function_name: str, payload: Mapping[str, Any] | None = None) -> QueryResult[Any]:
        self.invoked.append(function_name)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    async def execute(self, query: Query) -> QueryResult[Any]:
        raise NotImplementedError

    async def insert(
        self,
        table_name: str,
        values: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> QueryResult[list[dict[str, Any]]]:
        raise NotImplementedError

    async def update(self, query: Query, values: Mapping[str, Any]) -> QueryResult[list[dict[str, Any]]]:
        raise NotImplementedError

    async def delete(self, query: Query) -> QueryResult[None]:
        raise NotImplementedError

    async def sign_in(self, email: str, password: str) -> QueryResult[dict[str, Any]]:
        raise NotImplementedError


class ProvisioningTests(unittest.IsolatedAsyncioTestCase):
    async def test_success_returns_credentials(self) -> None:
        backend = _FunctionBackend(
            QueryResult.success(
                {
                    "success": True,
                    "users": [
                        {"email": "admin@fuel.test", "password": "Admin123!", "role": "Admin"},
                        {"email": "employee@fuel.test", "password": "Employee123!", "role": "Employee"},
                    ],
                }
            )
        )
        notifier = Notifier()

        result = await provision_test_users(backend, notifier=notifier)

        self.assertTrue(result.ok)
        self.assertEqual([user.role for user in result.data.users], ["Admin", "Employee"])
        self.assertEqual(backend.invoked, [DEFAULT_FUNCTION_NAME])
        self.assertEqual([item.message for item in notifier.items], ["Test users created successfully!"])

    async def test_function_error_is_notified(self) -> None:
        notifier = Notifier()

        result = await provision_test_users(_FunctionBackend(QueryResult.failure("Function not found")), notifier=notifier)

        self.assertEqual(result.error, "Function not found")
        self.assertEqual([item.message for item in notifier.items], ["Error: Function not found"])

    async def test_unsuccessful_payload_uses_its_message(self) -> None:
        notifier = Notifier()
        backend = _FunctionBackend(QueryResult.success({"success": False, "message": "Users already exist"}))

        result = await provision_test_users(backend, notifier=notifier)

        self.assertFalse(result.ok)
        self.assertEqual(notifier.items[0].message, "Users already exist")

    async def test_unreachable_service_is_notified(self) -> None:
        notifier = Notifier()
        backend = _FunctionBackend(BackendUnavailableError("timed out"))

        result = await provision_test_users(backend, notifier=notifier, function_name="seed-users")

        self.assertEqual(result.error, "timed out")
        self.assertEqual(backend.invoked, ["seed-users"])
        self.assertEqual(notifier.items[0].level, "error")


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import logging

from pydantic import ValidationError

from fuelsymphony.errors import BackendError
from fuelsymphony.schemas import ProvisioningResult
from fuelsymphony.services.backend import BackendClient, QueryResult
from fuelsymphony.services.notifications import Notifier

logger = logging.getLogger("fuelsymphony.provisioning")

DEFAULT_FUNCTION_NAME = "create-test-users"


async def provision_test_users(
    client: BackendClient,
    *,
    notifier: Notifier,
    function_name: str = DEFAULT_FUNCTION_NAME,
) -> QueryResult[ProvisioningResult]:
    try:
        result = await client.invoke(function_name)
    except BackendError as exc:
        result = QueryResult.failure(str(exc) or exc.__class__.__name__)

    if not result.ok:
        notifier.error(f"Error: {result.error}")
        return QueryResult.failure(result.error or "")

    try:
        outcome = ProvisioningResult.model_validate(result.data or {})
    except ValidationError:
        logger.warning("test_users_unexpected_response", extra={"function": function_name})
        notifier.error("Error: unexpected response from the provisioning function")
        return QueryResult.failure("Unexpected response from the provisioning function")

    if not outcome.success:
        message = outcome.message or "Failed to create test users"
        notifier.error(message)
        return QueryResult.failure(message)

    notifier.success("Test users created successfully!")
    logger.info("test_users_provisioned", extra={"function": function_name, "count": len(outcome.users)})
    return QueryResult.success(outcome)

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from fuelsymphony.services.backend import QueryResult
from fuelsymphony.services.notifications import Notifier

logger = logging.getLogger("fuelsymphony.fetch_hook")

T = TypeVar("T")

Operation = Callable[[], Awaitable[QueryResult[T]]]


@dataclass(frozen=True, slots=True)
class HookState(Generic[T]):
    data: T | None = None
    loading: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "loading": self.loading, "error": self.error}


class FetchHook(Generic[T]):
    """Read state bound to the lifetime of one view.

    The operation is re-issued whenever the dependency tuple changes. Every
    invocation gets a sequence token; a settlement is applied only while the
    hook is mounted and only if its token is still the latest one issued.
    """

    def __init__(
        self,
        operation: Operation[T],
        *,
        notifier: Notifier,
        label: str,
        enabled: bool = True,
    ) -> None:
        self._operation = operation
        self._notifier = notifier
        self._label = label
        self._enabled = enabled
        self._state: HookState[T] = HookState()
        self._dependencies: tuple[Any, ...] | None = None
        self._sequence = 0
        self._mounted = False
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> HookState[T]:
        return self._state

    @property
    def label(self) -> str:
        return self._label

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def sequence(self) -> int:
        return self._sequence

    def mount(self, dependencies: Sequence[Any] = ()) -> None:
        self._mounted = True
        self.set_dependencies(dependencies)

    def unmount(self) -> None:
        self._mounted = False

    def set_dependencies(self, dependencies: Sequence[Any]) -> None:
        deps = tuple(dependencies)
        if self._dependencies is not None and deps == self._dependencies:
            return
        self._dependencies = deps
        self._start()

    def rebind(self, operation: Operation[T], dependencies: Sequence[Any], *, enabled: bool = True) -> None:
        self._operation = operation
        self._enabled = enabled
        self.set_dependencies(dependencies)

    def refetch(self) -> None:
        self._start()

    def _start(self) -> None:
        if not self._mounted:
            return
        self._sequence += 1
        if not self._enabled:
            self._state = HookState()
            self._task = None
            return
        token = self._sequence
        self._state = HookState(data=self._state.data, loading=True, error=None)
        self._task = asyncio.get_running_loop().create_task(self._run(token))

    async def _run(self, token: int) -> None:
        try:
            result = await self._operation()
        except Exception as exc:
            logger.warning(
                "fetch_hook_operation_failed",
                extra={"hook": self._label, "error_type": exc.__class__.__name__},
            )
            result = QueryResult.failure(str(exc) or exc.__class__.__name__)

        if not self._mounted:
            logger.debug("fetch_hook_result_after_unmount", extra={"hook": self._label, "token": token})
            return
        if token != self._sequence:
            logger.debug(
                "fetch_hook_stale_result_discarded",
                extra={"hook": self._label, "token": token, "latest": self._sequence},
            )
            return

        if result.ok:
            self._state = HookState(data=result.data, loading=False, error=None)
            return

        self._state = HookState(data=None, loading=False, error=result.error)
        self._notifier.error(f"Failed to load {self._label}: {result.error}", source=self._label)

    async def settled(self) -> HookState[T]:
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        return self._state

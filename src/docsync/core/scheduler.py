"""Keyed debounce scheduling on the running event loop."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger()

Action = Callable[[], Awaitable[None]]


@dataclass
class _Armed:
    task: asyncio.Task[None]
    action: Action


@dataclass
class DebounceScheduler:
    """Runs an action once a key has been quiet for a delay.

    ``arm(key, delay, action)`` cancels whatever was armed for ``key`` and
    schedules ``action`` after ``delay`` seconds, so a burst of arms inside
    the delay window runs the action exactly once.
    """

    _armed: dict[str, _Armed] = field(default_factory=dict, init=False)

    def arm(self, key: str, delay: float, action: Action) -> None:
        self.cancel(key)
        task = asyncio.get_running_loop().create_task(self._fire(key, delay, action))
        self._armed[key] = _Armed(task=task, action=action)

    def cancel(self, key: str) -> bool:
        """Cancel the pending action for ``key``. Returns True if one was pending."""
        armed = self._armed.pop(key, None)
        if armed is None or armed.task.done():
            return False
        armed.task.cancel()
        return True

    def is_armed(self, key: str) -> bool:
        armed = self._armed.get(key)
        return armed is not None and not armed.task.done()

    async def flush(self, key: str) -> bool:
        """Run the pending action for ``key`` now instead of after its delay.

        Returns True if an action was pending.
        """
        armed = self._armed.get(key)
        if armed is None or armed.task.done():
            return False
        self.cancel(key)
        with contextlib.suppress(asyncio.CancelledError):
            await armed.task
        await self._run(key, armed.action)
        return True

    async def close(self) -> None:
        """Cancel every pending action without running it."""
        tasks = [armed.task for armed in self._armed.values() if not armed.task.done()]
        self._armed.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _fire(self, key: str, delay: float, action: Action) -> None:
        await asyncio.sleep(delay)
        armed = self._armed.get(key)
        if armed is not None and armed.task is asyncio.current_task():
            del self._armed[key]
        await self._run(key, action)

    @staticmethod
    async def _run(key: str, action: Action) -> None:
        try:
            await action()
        except Exception:
            logger.error("debounced_action_failed", key=key, exc_info=True)

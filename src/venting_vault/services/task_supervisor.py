"""
Supervised background tasks keyed by conversation turn.

Moderation for a turn runs in the background after the reply is shown. Each
task is tracked under its turn id so it can be awaited, or cancelled when the
user navigates away, and is never silently dropped.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


class TurnTaskStatus(Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class TurnTask:
    """A background task belonging to one turn."""

    turn_id: str
    name: str
    status: TurnTaskStatus = TurnTaskStatus.RUNNING
    error: Optional[BaseException] = field(default=None, repr=False)
    _asyncio_task: Optional[asyncio.Task] = field(default=None, repr=False)


class TurnTaskSupervisor:
    """Tracks, awaits and cancels per-turn background tasks."""

    def __init__(self) -> None:
        self._tasks: Dict[str, TurnTask] = {}
        self._active_tasks: Set[asyncio.Task] = set()

    def spawn(self, turn_id: str, coro: Awaitable[Any], name: str = "moderation") -> TurnTask:
        """Run ``coro`` in the background under ``turn_id``.

        A task already running for the same turn is cancelled first.
        """
        existing = self._tasks.get(turn_id)
        if existing is not None and existing.status == TurnTaskStatus.RUNNING:
            self._cancel(existing)

        task = TurnTask(turn_id=turn_id, name=name)
        asyncio_task = asyncio.ensure_future(coro)
        task._asyncio_task = asyncio_task
        self._tasks[turn_id] = task
        # Strong reference until done
        self._active_tasks.add(asyncio_task)
        asyncio_task.add_done_callback(self._active_tasks.discard)
        asyncio_task.add_done_callback(lambda done: self._on_done(task, done))
        logger.debug(f"Spawned {name} task for turn {turn_id}")
        return task

    def _on_done(self, task: TurnTask, done: asyncio.Future) -> None:
        if done.cancelled():
            task.status = TurnTaskStatus.CANCELLED
            logger.info(f"{task.name} task for turn {task.turn_id} cancelled")
            return
        error = done.exception()
        if error is not None:
            task.status = TurnTaskStatus.FAILED
            task.error = error
            logger.error(f"{task.name} task for turn {task.turn_id} failed: {error}")
        else:
            task.status = TurnTaskStatus.COMPLETED

    def _cancel(self, task: TurnTask) -> bool:
        if task._asyncio_task is None or task._asyncio_task.done():
            return False
        task._asyncio_task.cancel()
        task.status = TurnTaskStatus.CANCELLED
        return True

    def cancel(self, turn_id: Optional[str] = None) -> int:
        """Cancel the task for ``turn_id``, or every running task when None.

        Returns the number of tasks cancelled.
        """
        if turn_id is not None:
            task = self._tasks.get(turn_id)
            return 1 if task is not None and self._cancel(task) else 0
        return sum(1 for task in list(self._tasks.values()) if self._cancel(task))

    def get(self, turn_id: str) -> Optional[TurnTask]:
        return self._tasks.get(turn_id)

    def pending(self) -> List[TurnTask]:
        return [
            task
            for task in self._tasks.values()
            if task._asyncio_task is not None and not task._asyncio_task.done()
        ]

    @property
    def has_pending(self) -> bool:
        return bool(self._active_tasks)

    async def wait_all(self) -> None:
        """Wait until every spawned task has finished, including ones spawned meanwhile."""
        while self._active_tasks:
            await asyncio.gather(*list(self._active_tasks), return_exceptions=True)

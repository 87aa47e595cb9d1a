# SPDX-License-Identifier: Apache-2.0
"""In-memory tracking of asynchronous action tasks."""
from __future__ import annotations

import asyncio
import enum
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from fleet_agent.metrics import TASKS_IN_FLIGHT

if TYPE_CHECKING:
    from fleet_agent.actions.base import RunOutcome

log = logging.getLogger(__name__)


class TaskState(str, enum.Enum):
    RUNNING = "running"
    # cancel requested; the handler thread has not returned yet
    CANCELLING = "cancelling"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


_SETTLED = (TaskState.DONE, TaskState.FAILED, TaskState.CANCELLED)


class TaskLimitError(RuntimeError):
    pass


class UnknownTaskError(KeyError):
    def __str__(self) -> str:
        return f"unknown task {self.args[0]}"


@dataclass(slots=True)
class Task:
    task_id: str
    method: str
    state: TaskState = TaskState.RUNNING
    value: Any = None
    error: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def finished(self) -> bool:
        return self.state in _SETTLED

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"agent_task_id": self.task_id, "state": self.state.value}
        if self.error is not None:
            out["exception"] = {"message": self.error}
        return out


class TaskService:
    """Runs blocking action calls off the event loop and remembers their outcome.

    ``get``, ``list`` and ``cancel`` may be called from worker threads (the
    task actions run there), so the task table is guarded by a lock.

    A handler running in a thread cannot be interrupted. ``cancel`` only marks
    the task ``cancelling``; it keeps its slot under ``max_tasks`` until the
    handler returns, and its result is then discarded.

    At most ``retain_tasks`` finished tasks are remembered; the oldest are
    forgotten first.
    """

    def __init__(self, max_tasks: int = 32, retain_tasks: int = 256):
        self.max_tasks = max_tasks
        self.retain_tasks = retain_tasks
        self._tasks: Dict[str, Task] = {}
        self._handles: Dict[str, asyncio.Task] = {}
        self._lock = threading.Lock()

    @property
    def running(self) -> int:
        with self._lock:
            return sum(1 for task in self._tasks.values() if not task.finished)

    def start(self, method: str, fn: Callable[[], RunOutcome]) -> Task:
        if self.running >= self.max_tasks:
            raise TaskLimitError(f"task limit of {self.max_tasks} reached")
        task = Task(task_id=str(uuid.uuid4()), method=method)
        with self._lock:
            self._tasks[task.task_id] = task
        self._handles[task.task_id] = asyncio.create_task(self._execute(task, fn), name=f"task-{task.task_id}")
        log.info("started task %s for %s", task.task_id, method)
        return task

    async def _execute(self, task: Task, fn: Callable[[], RunOutcome]) -> None:
        TASKS_IN_FLIGHT.inc()
        try:
            outcome = await asyncio.to_thread(fn)
        except asyncio.CancelledError:
            self._finish(task, TaskState.CANCELLED)
            raise
        except Exception as exc:
            log.exception("task %s (%s) failed", task.task_id, task.method)
            self._finish(task, TaskState.FAILED, error=str(exc))
        else:
            if outcome.failed:
                self._finish(task, TaskState.FAILED, error=str(outcome.error))
            else:
                self._finish(task, TaskState.DONE, value=outcome.value)
        finally:
            TASKS_IN_FLIGHT.dec()
            self._handles.pop(task.task_id, None)

    def _finish(self, task: Task, state: TaskState, *, value: Any = None, error: str | None = None) -> None:
        with self._lock:
            if task.finished:
                return
            if task.state is TaskState.CANCELLING:
                state, value, error = TaskState.CANCELLED, None, None
            task.state = state
            task.value = value
            task.error = error
            task.finished_at = datetime.now(timezone.utc)
            self._evict()
        log.info("task %s (%s) %s", task.task_id, task.method, state.value)

    def _evict(self) -> None:
        finished = sorted((t for t in self._tasks.values() if t.finished), key=lambda t: t.finished_at)
        for task in finished[: max(len(finished) - self.retain_tasks, 0)]:
            del self._tasks[task.task_id]
            log.debug("forgetting task %s (%s)", task.task_id, task.method)

    def get(self, task_id: str) -> Task:
        with self._lock:
            try:
                return self._tasks[task_id]
            except KeyError:
                raise UnknownTaskError(task_id) from None

    def list(self) -> List[Task]:
        with self._lock:
            return list(self._tasks.values())

    def cancel(self, task_id: str) -> Task:
        task = self.get(task_id)
        with self._lock:
            if task.state is TaskState.RUNNING:
                task.state = TaskState.CANCELLING
                log.info("task %s (%s) cancelling", task.task_id, task.method)
        return task

    async def wait(self, task_id: str) -> Task:
        handle = self._handles.get(task_id)
        if handle is not None:
            await asyncio.gather(handle, return_exceptions=True)
        return self.get(task_id)

    async def close(self) -> None:
        handles = list(self._handles.values())
        for handle in handles:
            handle.cancel()
        await asyncio.gather(*handles, return_exceptions=True)
        self._handles.clear()

# SPDX-License-Identifier: Apache-2.0
"""Actions for polling and cancelling asynchronous tasks."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from fleet_agent.tasks import TaskService, TaskState, UnknownTaskError

from .base import Action


class _TaskAction(Action):
    def __init__(self, tasks: TaskService):
        self.tasks = tasks

    def is_asynchronous(self) -> bool:
        return False

    def is_persistent(self) -> bool:
        return False


class GetTaskAction(_TaskAction):
    """Return a finished task's value, or its state while it still runs."""

    def run(self, task_id: str) -> Tuple[Any, Optional[Exception]]:
        try:
            task = self.tasks.get(task_id)
        except UnknownTaskError as exc:
            return None, exc
        if task.state is TaskState.DONE:
            return task.value, None
        if task.state is TaskState.FAILED:
            return None, RuntimeError(task.error)
        return task.to_dict(), None


class CancelTaskAction(_TaskAction):
    def run(self, task_id: str) -> Tuple[Optional[Dict[str, Any]], Optional[Exception]]:
        try:
            task = self.tasks.cancel(task_id)
        except UnknownTaskError as exc:
            return None, exc
        return task.to_dict(), None


class ListTasksAction(_TaskAction):
    def run(self, *states: str) -> Tuple[List[Dict[str, Any]], Optional[Exception]]:
        wanted = set(states)
        return [
            {**task.to_dict(), "method": task.method}
            for task in self.tasks.list()
            if not wanted or task.state.value in wanted
        ], None

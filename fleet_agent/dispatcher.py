# SPDX-License-Identifier: Apache-2.0
"""Route inbound requests to actions and turn outcomes into responses."""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import Callable, Mapping

from fleet_agent.actions import Action, RunOutcome, Runner, RunnerError
from fleet_agent.messages import Request, Response
from fleet_agent.metrics import REQUESTS
from fleet_agent.tasks import TaskLimitError, TaskService

log = logging.getLogger(__name__)


class ActionDispatcher:
    """Resolves a request's method to an action and invokes it through the runner.

    Synchronous actions answer with their value; asynchronous ones are started
    as tasks and answer with the task id. Errors become exception responses,
    this never raises for a failing action.
    """

    def __init__(self, actions: Mapping[str, Action], runner: Runner, tasks: TaskService):
        self.actions = actions
        self.runner = runner
        self.tasks = tasks

    async def dispatch(self, request: Request) -> Response:
        action = self.actions.get(request.method)
        if action is None:
            REQUESTS.labels("unknown", "unknown_action").inc()
            log.warning("no action registered for method %s", request.method)
            return Response.of_exception(f"unknown action '{request.method}'", kind="unknown_action")

        call = functools.partial(self.runner.run, action, request.payload)
        if action.is_asynchronous():
            return self._start_task(request.method, call)
        return await self._call(request.method, call)

    async def resume(self, method: str, payload: bytes = b"") -> Response:
        """Re-enter a suspended action, as a task when it is asynchronous."""
        action = self.actions.get(method)
        if action is None:
            REQUESTS.labels("unknown", "unknown_action").inc()
            return Response.of_exception(f"unknown action '{method}'", kind="unknown_action")
        call = functools.partial(self.runner.resume, action, payload)
        if action.is_asynchronous():
            return self._start_task(method, call)
        return await self._call(method, call)

    def _start_task(self, method: str, call: Callable[[], RunOutcome]) -> Response:
        try:
            task = self.tasks.start(method, call)
        except TaskLimitError as exc:
            REQUESTS.labels(method, "task_limit").inc()
            log.warning("refusing %s: %s", method, exc)
            return Response.of_exception(str(exc), kind="task_limit")
        REQUESTS.labels(method, "started").inc()
        return Response.of_value(task.to_dict())

    async def _call(self, method: str, call: Callable[[], RunOutcome]) -> Response:
        try:
            outcome = await asyncio.to_thread(call)
        except RunnerError as exc:
            REQUESTS.labels(method, exc.kind).inc()
            log.warning("action %s not invoked: %s", method, exc)
            return Response.of_exception(**exc.to_dict())
        except Exception as exc:
            REQUESTS.labels(method, "exception").inc()
            log.exception("action %s raised", method)
            return Response.of_exception(str(exc), kind="exception")
        if outcome.failed:
            REQUESTS.labels(method, "action_error").inc()
            log.info("action %s failed: %s", method, outcome.error)
            return Response.of_exception(str(outcome.error), kind="action_error")
        REQUESTS.labels(method, "ok").inc()
        return Response.of_value(outcome.value)

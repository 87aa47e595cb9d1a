# SPDX-License-Identifier: Apache-2.0
"""Action contract consumed by the runner."""
from __future__ import annotations

import abc
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, NamedTuple, Optional, Tuple

if TYPE_CHECKING:
    from fleet_agent.tasks import TaskService


class RunOutcome(NamedTuple):
    """Result of a handler that was actually invoked.

    ``error`` is the handler's own business error. Failures that prevent the
    handler from being reached are raised as ``RunnerError`` instead.
    """

    value: Any = None
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True, slots=True)
class ActionContext:
    """Agent services handed to action factories."""

    agent_id: str
    tasks: "TaskService"
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Action(abc.ABC):
    """A unit of work the agent can be asked to perform.

    Subclasses define ``run`` with their own positional parameters, annotated
    so that the runner can decode JSON arguments into them, and returning a
    ``Tuple[value, Optional[Exception]]`` pair::

        class Drain(Action):
            def run(self, service: str, *hosts: str) -> Tuple[dict, Optional[Exception]]:
                ...
    """

    @abc.abstractmethod
    def is_asynchronous(self) -> bool:
        """Whether the agent should run this action as a background task."""

    @abc.abstractmethod
    def is_persistent(self) -> bool:
        """Whether the agent should keep this action's task across restarts."""

    def resume(self) -> Tuple[Any, Optional[Exception]]:
        return None, NotImplementedError(f"{type(self).__name__} cannot be resumed")

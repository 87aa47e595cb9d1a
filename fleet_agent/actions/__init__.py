# SPDX-License-Identifier: Apache-2.0
"""Action factory registry."""
from __future__ import annotations

import logging
from typing import Callable, Dict

from fleet_agent.config import ActionsConfig
from fleet_agent.utils import resolve_callable

from .base import Action, ActionContext, RunOutcome
from .errors import (
    ArgumentCountError,
    ArgumentTypeError,
    DecodeError,
    InvalidSignatureError,
    MissingHandlerError,
    PayloadFormatError,
    RunnerError,
)
from .runner import Runner

log = logging.getLogger(__name__)

ActionFactory = Callable[..., Action]

ACTION_TYPES: Dict[str, ActionFactory] = {}


class UnknownActionError(KeyError):
    def __str__(self) -> str:
        return f"unknown action '{self.args[0]}'"


def register(action_name: str, factory: ActionFactory) -> None:
    ACTION_TYPES[action_name] = factory


def create_action(action_name: str, ctx: ActionContext, **options) -> Action:
    if action_name not in ACTION_TYPES:
        raise UnknownActionError(action_name)
    return ACTION_TYPES[action_name](ctx, **options)


def build_registry(config: ActionsConfig, ctx: ActionContext) -> Dict[str, Action]:
    """Instantiate every registered action not listed in ``config.disabled``.

    An ``actions.<name>.factory: "package.module:callable"`` entry adds a
    plugin action built by that callable with ``(ctx, **options)``.
    """
    disabled = set(config.disabled)
    for name in disabled - ACTION_TYPES.keys() - config.options.keys():
        log.warning("cannot disable unknown action %s", name)
    instances: Dict[str, Action] = {}
    for name, options in config.options.items():
        factory_path = options.get("factory")
        if factory_path and name not in disabled:
            factory = resolve_callable(factory_path)
            instances[name] = factory(ctx, **{k: v for k, v in options.items() if k != "factory"})
    for name in ACTION_TYPES:
        if name in disabled or name in instances:
            continue
        instances[name] = create_action(name, ctx, **config.options.get(name, {}))
    log.info("registered %d actions", len(instances))
    return instances


__all__ = [
    "Action",
    "ActionContext",
    "ArgumentCountError",
    "ArgumentTypeError",
    "DecodeError",
    "InvalidSignatureError",
    "MissingHandlerError",
    "PayloadFormatError",
    "RunOutcome",
    "Runner",
    "RunnerError",
    "UnknownActionError",
    "build_registry",
    "create_action",
    "register",
]


from .ping import GetStateAction, PingAction
from .task import CancelTaskAction, GetTaskAction, ListTasksAction

register("ping", lambda ctx, **opts: PingAction())
register("get_state", lambda ctx, **opts: GetStateAction(ctx))
register("get_task", lambda ctx, **opts: GetTaskAction(ctx.tasks))
register("cancel_task", lambda ctx, **opts: CancelTaskAction(ctx.tasks))
register("list_tasks", lambda ctx, **opts: ListTasksAction(ctx.tasks))

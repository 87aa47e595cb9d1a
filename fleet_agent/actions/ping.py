# SPDX-License-Identifier: Apache-2.0
"""Liveness and state actions."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

from .base import Action, ActionContext


class PingAction(Action):
    def is_asynchronous(self) -> bool:
        return False

    def is_persistent(self) -> bool:
        return False

    def run(self) -> Tuple[str, Optional[Exception]]:
        return "pong", None


@dataclass(slots=True)
class AgentState:
    agent_id: str
    uptime_s: float
    tasks_running: int


class GetStateAction(Action):
    def __init__(self, ctx: ActionContext):
        self.ctx = ctx

    def is_asynchronous(self) -> bool:
        return False

    def is_persistent(self) -> bool:
        return False

    def run(self) -> Tuple[AgentState, Optional[Exception]]:
        uptime = (datetime.now(timezone.utc) - self.ctx.started_at).total_seconds()
        return AgentState(agent_id=self.ctx.agent_id, uptime_s=round(uptime, 3), tasks_running=self.ctx.tasks.running), None

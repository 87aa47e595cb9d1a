# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures for agent tests."""
from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, List, Tuple

import pytest

from fleet_agent.actions import ActionContext, Runner
from fleet_agent.tasks import TaskService
from fleet_agent.transport import register as register_transport
from fleet_agent.transport.base import BaseTransport


class MemoryTransport(BaseTransport):
    """Transport used in tests: requests are pushed onto ``inbox``, replies collected."""

    def __init__(self, transport_id: str, options, *, on_message):
        super().__init__(transport_id, on_message=on_message)
        self.options = options
        self.inbox: asyncio.Queue[bytes] = asyncio.Queue()
        self.published: List[Tuple[str, dict]] = []

    async def iter_messages(self) -> AsyncIterator[bytes]:
        while True:
            yield await self.inbox.get()

    async def publish(self, topic: str, data: bytes) -> None:
        self.published.append((topic, json.loads(data)))


@pytest.fixture(scope="session", autouse=True)
def register_test_transports():
    register_transport("memory", lambda agent_id, options, on_message: MemoryTransport(agent_id, options, on_message=on_message))
    yield


@pytest.fixture
def runner() -> Runner:
    return Runner()


@pytest.fixture
def tasks() -> TaskService:
    return TaskService(max_tasks=4)


@pytest.fixture
def ctx(tasks) -> ActionContext:
    return ActionContext(agent_id="agent-test", tasks=tasks)


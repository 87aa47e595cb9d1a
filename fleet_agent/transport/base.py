# SPDX-License-Identifier: Apache-2.0
"""Transport primitives delivering request bytes and carrying replies."""
from __future__ import annotations

import abc
import asyncio
import contextlib
from typing import AsyncIterator, Awaitable, Callable, Optional

OnMessage = Callable[[bytes], Awaitable[None]]


class BaseTransport(abc.ABC):
    def __init__(self, transport_id: str, *, on_message: OnMessage):
        self.transport_id = transport_id
        self._on_message = on_message
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name=f"transport-{self.transport_id}")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _run(self) -> None:
        async for raw in self.iter_messages():
            await self._on_message(raw)

    @abc.abstractmethod
    def iter_messages(self) -> AsyncIterator[bytes]:  # pragma: no cover - interface
        raise NotImplementedError

    @abc.abstractmethod
    async def publish(self, topic: str, data: bytes) -> None:  # pragma: no cover - interface
        raise NotImplementedError

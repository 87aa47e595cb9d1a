# SPDX-License-Identifier: Apache-2.0
"""Fleet agent runtime: transport in, actions out."""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from prometheus_client import start_http_server

from fleet_agent.actions import Action, ActionContext, PayloadFormatError, Runner, build_registry
from fleet_agent.config import AgentConfig, load_config
from fleet_agent.dispatcher import ActionDispatcher
from fleet_agent.messages import Request, Response
from fleet_agent.metrics import REQUEST_LATENCY, REQUESTS
from fleet_agent.tasks import TaskService
from fleet_agent.transport import create_transport
from fleet_agent.transport.base import BaseTransport

log = logging.getLogger("fleet_agent")


class FleetAgent:
    def __init__(self, config: AgentConfig, workers: int = 4):
        self.config = config
        self.runner = Runner()
        self.tasks = TaskService(max_tasks=config.agent.max_tasks, retain_tasks=config.agent.retain_tasks)
        self.actions: Dict[str, Action] = {}
        self.dispatcher: ActionDispatcher | None = None
        self.transport: BaseTransport | None = None
        self.queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=1024)
        self.worker_count = workers
        self._workers: list[asyncio.Task] = []

    async def start(self) -> None:
        ctx = ActionContext(agent_id=self.config.agent.id, tasks=self.tasks)
        self.actions = build_registry(self.config.actions, ctx)
        self.dispatcher = ActionDispatcher(self.actions, self.runner, self.tasks)
        self.transport = create_transport(self.config.transport, self.config.agent.id, on_message=self._enqueue)
        await self.transport.start()
        for idx in range(self.worker_count):
            self._workers.append(asyncio.create_task(self._worker_loop(idx), name=f"worker-{idx}"))
        if self.config.metrics_port:
            start_http_server(self.config.metrics_port)
        log.info("agent %s started with %d actions", self.config.agent.id, len(self.actions))

    async def stop(self) -> None:
        for _ in self._workers:
            await self.queue.put(None)
        if self.transport:
            await self.transport.stop()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        await self.tasks.close()

    async def handle(self, raw: bytes) -> Tuple[Optional[Request], Response]:
        """Decode one request and dispatch it; malformed requests get an exception response."""
        try:
            request = Request.from_bytes(raw)
        except PayloadFormatError as exc:
            REQUESTS.labels("unknown", exc.kind).inc()
            log.warning("dropping malformed request: %s", exc)
            return None, Response.of_exception(**exc.to_dict())
        response = await self.dispatcher.dispatch(request)
        elapsed = datetime.now(timezone.utc) - request.received_at
        REQUEST_LATENCY.labels(request.method).observe(elapsed.total_seconds() * 1000)
        return request, response

    async def _enqueue(self, raw: bytes) -> None:
        try:
            self.queue.put_nowait(raw)
        except asyncio.QueueFull:
            REQUESTS.labels("unknown", "queue_full").inc()
            log.error("request queue full; dropping message")

    def _encode(self, request: Request, response: Response) -> bytes:
        try:
            return response.to_bytes()
        except (TypeError, ValueError) as exc:
            REQUESTS.labels(request.method, "serialization").inc()
            log.error("cannot serialize response to %s: %s", request.method, exc)
            return Response.of_exception(f"cannot serialize result: {exc}", kind="serialization").to_bytes()

    async def _worker_loop(self, idx: int) -> None:
        while True:
            raw = await self.queue.get()
            if raw is None:
                self.queue.task_done()
                break
            try:
                request, response = await self.handle(raw)
                if request is not None and request.reply_to:
                    await self.transport.publish(request.reply_to, self._encode(request, response))
            except Exception:
                log.exception("worker %d failed to handle request", idx)
            finally:
                self.queue.task_done()


async def main_async(args) -> None:
    config = load_config(args.config)
    agent = FleetAgent(config, workers=args.workers)
    await agent.start()
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows fallback
            pass

    await stop_event.wait()
    log.info("shutdown requested")
    await agent.stop()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description="Fleet management agent")
    parser.add_argument("--config", default="config/agent.yaml")
    parser.add_argument("--workers", type=int, default=4)
    args = parser.parse_args()
    try:
        asyncio.run(main_async(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

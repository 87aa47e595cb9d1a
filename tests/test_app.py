# SPDX-License-Identifier: Apache-2.0
"""End-to-end agent test over the in-memory transport."""
from __future__ import annotations

import asyncio
import json
from typing import Any, Optional, Tuple

import pytest
from prometheus_client import REGISTRY

from fleet_agent.actions import Action
from fleet_agent.app import FleetAgent
from fleet_agent.config import parse_config


class RawBytesAction(Action):
    def is_asynchronous(self) -> bool:
        return False

    def is_persistent(self) -> bool:
        return False

    def run(self) -> Tuple[Any, Optional[Exception]]:
        return b"raw", None


def make_raw(ctx):
    return RawBytesAction()


async def _wait_for(predicate, timeout: float = 5.0):
    end_time = asyncio.get_event_loop().time() + timeout
    while asyncio.get_event_loop().time() < end_time:
        if predicate():
            return
        await asyncio.sleep(0.02)
    raise AssertionError("condition not met within timeout")


def _config():
    return parse_config(
        {
            "agent": {"id": "agent-e2e", "max_tasks": 2},
            "transport": {"type": "memory"},
            "actions": {"disabled": ["list_tasks"], "raw": {"factory": "tests.test_app:make_raw"}},
            "metrics_port": 0,
        }
    )


@pytest.mark.asyncio
async def test_agent_replies_over_transport():
    agent = FleetAgent(_config(), workers=2)
    await agent.start()
    try:
        transport = agent.transport
        assert transport.options["topic"] == "agent/agent-e2e"
        assert "list_tasks" not in agent.actions

        for idx, method in enumerate(["ping", "list_tasks", "get_task"]):
            request = {"method": method, "arguments": [], "reply_to": f"replies/{idx}"}
            transport.inbox.put_nowait(json.dumps(request).encode("utf-8"))
        transport.inbox.put_nowait(b"not json")
        transport.inbox.put_nowait(json.dumps({"method": "ping", "arguments": []}).encode("utf-8"))

        await _wait_for(lambda: len(transport.published) == 3)
        replies = dict(transport.published)
        assert replies["replies/0"] == {"value": "pong"}
        assert replies["replies/1"]["exception"]["kind"] == "unknown_action"
        assert replies["replies/2"]["exception"]["kind"] == "argument_count"
    finally:
        await agent.stop()


@pytest.mark.asyncio
async def test_handle_reports_malformed_requests():
    agent = FleetAgent(_config())
    await agent.start()
    try:
        request, response = await agent.handle(b'{"arguments": []}')
        assert request is None
        assert response.exception["kind"] == "payload_format"

        request, response = await agent.handle(b'{"method": "get_state", "arguments": [], "id": 9}')
        assert request.request_id == "9"
        assert response.value.agent_id == "agent-e2e"
    finally:
        await agent.stop()


@pytest.mark.asyncio
async def test_unserializable_value_gets_exception_reply():
    agent = FleetAgent(_config(), workers=1)
    await agent.start()
    try:
        transport = agent.transport
        transport.inbox.put_nowait(json.dumps({"method": "raw", "arguments": [], "reply_to": "replies/raw"}).encode("utf-8"))
        transport.inbox.put_nowait(json.dumps({"method": "ping", "arguments": [], "reply_to": "replies/ping"}).encode("utf-8"))

        await _wait_for(lambda: len(transport.published) == 2)
        replies = dict(transport.published)
        assert replies["replies/raw"]["exception"]["kind"] == "serialization"
        assert "bytes" in replies["replies/raw"]["exception"]["message"]
        assert replies["replies/ping"] == {"value": "pong"}
    finally:
        await agent.stop()


@pytest.mark.asyncio
async def test_handle_observes_request_latency():
    def count() -> float:
        return REGISTRY.get_sample_value("fleet_agent_request_latency_ms_count", {"method": "ping"}) or 0.0

    agent = FleetAgent(_config())
    await agent.start()
    try:
        before = count()
        request, response = await agent.handle(b'{"method": "ping", "arguments": []}')
        assert response.value == "pong"
        assert request.received_at.tzinfo is not None
        assert count() == before + 1
    finally:
        await agent.stop()

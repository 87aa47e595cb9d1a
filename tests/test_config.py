# SPDX-License-Identifier: Apache-2.0
"""Configuration loading and action registry construction."""
from __future__ import annotations

from typing import Optional, Tuple

import pytest

from fleet_agent.actions import Action, UnknownActionError, build_registry, create_action
from fleet_agent.actions.ping import PingAction
from fleet_agent.config import ActionsConfig, load_config, parse_config
from fleet_agent.utils import resolve_callable


class EchoAction(Action):
    def __init__(self, greeting: str):
        self.greeting = greeting

    def is_asynchronous(self) -> bool:
        return False

    def is_persistent(self) -> bool:
        return False

    def run(self, name: str) -> Tuple[str, Optional[Exception]]:
        return f"{self.greeting} {name}", None


def make_echo(ctx, greeting: str = "hello") -> EchoAction:
    return EchoAction(greeting)


def test_load_config(tmp_path):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text(
        "\n".join(
            [
                "version: 1",
                "agent:",
                "  id: agent-7",
                "  max_tasks: 4",
                "  retain_tasks: 10",
                "transport:",
                "  type: mqtt",
                "  host: broker.local",
                "  port: 8883",
                "actions:",
                "  disabled: [list_tasks]",
                "  echo:",
                "    factory: tests.test_config:make_echo",
                "    greeting: hi",
                "metrics_port: 0",
            ]
        )
    )

    config = load_config(config_path)

    assert config.agent.id == "agent-7"
    assert config.agent.max_tasks == 4
    assert config.agent.retain_tasks == 10
    assert config.transport.type == "mqtt"
    assert config.transport.options == {"host": "broker.local", "port": 8883, "topic": "agent/agent-7"}
    assert config.actions.disabled == ["list_tasks"]
    assert config.actions.options == {"echo": {"factory": "tests.test_config:make_echo", "greeting": "hi"}}
    assert config.metrics_port == 0


def test_defaults():
    config = parse_config({"agent": {"id": "a1"}})

    assert config.version == 1
    assert config.agent.max_tasks == 32
    assert config.agent.retain_tasks == 256
    assert config.transport.type == "mqtt"
    assert config.transport.options["topic"] == "agent/a1"
    assert config.actions.disabled == []
    assert config.metrics_port == 9110


def test_explicit_topic_is_kept():
    config = parse_config({"agent": {"id": "a1"}, "transport": {"topic": "fleet/a1/in"}})

    assert config.transport.options["topic"] == "fleet/a1/in"


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"agent": {"max_tasks": 3}},
        {"agent": {"id": "a1", "max_tasks": 0}},
        {"agent": {"id": "a1", "retain_tasks": -1}},
        {"agent": {"id": "a1"}, "actions": {"disabled": "ping"}},
        {"agent": {"id": "a1"}, "actions": {"ping": "yes"}},
        {"agent": {"id": "a1"}, "transport": ["mqtt"]},
    ],
)
def test_invalid_config(raw):
    with pytest.raises(ValueError):
        parse_config(raw)


def test_load_config_rejects_non_mapping(tmp_path):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text("- just\n- a list\n")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_registry_builds_builtin_actions(ctx):
    actions = build_registry(ActionsConfig(), ctx)

    assert {"ping", "get_state", "get_task", "cancel_task", "list_tasks"} <= set(actions)
    assert isinstance(actions["ping"], PingAction)


def test_registry_honours_disabled_and_plugins(ctx, runner):
    config = ActionsConfig(
        disabled=["list_tasks", "does_not_exist"],
        options={"echo": {"factory": "tests.test_config:make_echo", "greeting": "hi"}},
    )

    actions = build_registry(config, ctx)

    assert "list_tasks" not in actions
    assert runner.run(actions["echo"], b'{"arguments": ["rob"]}') == ("hi rob", None)


def test_create_unknown_action(ctx):
    with pytest.raises(UnknownActionError) as excinfo:
        create_action("reboot", ctx)

    assert str(excinfo.value) == "unknown action 'reboot'"


def test_resolve_callable():
    assert resolve_callable("fleet_agent.utils:resolve_callable") is resolve_callable
    assert resolve_callable("fleet_agent.utils.resolve_callable") is resolve_callable
    with pytest.raises(ValueError):
        resolve_callable("resolve_callable")
    with pytest.raises(AttributeError):
        resolve_callable("fleet_agent.utils:missing")

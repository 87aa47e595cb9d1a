# SPDX-License-Identifier: Apache-2.0
"""Configuration loader for the fleet agent."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml


@dataclass(slots=True)
class AgentSettings:
    id: str
    max_tasks: int = 32
    retain_tasks: int = 256


@dataclass(slots=True)
class TransportConfig:
    type: str
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ActionsConfig:
    disabled: List[str] = field(default_factory=list)
    options: Dict[str, Dict[str, Any]] = field(default_factory=dict)


@dataclass(slots=True)
class AgentConfig:
    version: int
    agent: AgentSettings
    transport: TransportConfig
    actions: ActionsConfig
    metrics_port: int = 9110


def _parse_agent(data: Dict[str, Any]) -> AgentSettings:
    agent_id = data.get("id")
    if not agent_id:
        raise ValueError("agent.id is required")
    max_tasks = int(data.get("max_tasks", 32))
    retain_tasks = int(data.get("retain_tasks", 256))
    if max_tasks < 1 or retain_tasks < 0:
        raise ValueError("agent.max_tasks must be positive and agent.retain_tasks not negative")
    return AgentSettings(id=str(agent_id), max_tasks=max_tasks, retain_tasks=retain_tasks)


def _parse_transport(data: Dict[str, Any], agent_id: str) -> TransportConfig:
    if not isinstance(data, dict):
        raise ValueError("transport must be a mapping")
    options = {k: v for k, v in data.items() if k != "type"}
    options.setdefault("topic", f"agent/{agent_id}")
    return TransportConfig(type=data.get("type", "mqtt"), options=options)


def _parse_actions(data: Dict[str, Any]) -> ActionsConfig:
    if not isinstance(data, dict):
        raise ValueError("actions must be a mapping")
    disabled = data.get("disabled", []) or []
    if not isinstance(disabled, list):
        raise ValueError("actions.disabled must be a list of action names")
    options = {}
    for name, payload in data.items():
        if name == "disabled":
            continue
        if not isinstance(payload, dict):
            raise ValueError(f"action '{name}' must be a mapping")
        options[name] = payload
    return ActionsConfig(disabled=[str(name) for name in disabled], options=options)


def parse_config(raw: Dict[str, Any]) -> AgentConfig:
    agent = _parse_agent(raw.get("agent", {}) or {})
    return AgentConfig(
        version=int(raw.get("version", 1)),
        agent=agent,
        transport=_parse_transport(raw.get("transport", {}) or {}, agent.id),
        actions=_parse_actions(raw.get("actions", {}) or {}),
        metrics_port=int(raw.get("metrics_port", 9110)),
    )


def load_config(path: str | Path) -> AgentConfig:
    raw = yaml.safe_load(Path(path).read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"config {path} must be a mapping")
    return parse_config(raw)

# SPDX-License-Identifier: Apache-2.0
"""Transport factory."""
from __future__ import annotations

from typing import Callable

from fleet_agent.config import TransportConfig

from .base import BaseTransport


TRANSPORT_TYPES: dict[str, Callable[..., BaseTransport]] = {}


def register(transport_type: str, factory: Callable[..., BaseTransport]) -> None:
    TRANSPORT_TYPES[transport_type] = factory


def create_transport(cfg: TransportConfig, agent_id: str, *, on_message) -> BaseTransport:
    if cfg.type not in TRANSPORT_TYPES:
        raise ValueError(f"unknown transport type '{cfg.type}'")
    return TRANSPORT_TYPES[cfg.type](agent_id, cfg.options, on_message=on_message)


from .mqtt import MQTTTransport

register("mqtt", lambda agent_id, options, on_message: MQTTTransport(agent_id, options, on_message=on_message))

# SPDX-License-Identifier: Apache-2.0
"""MQTT transport: requests on the agent inbox topic, replies on ``reply_to``."""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from asyncio_mqtt import Client, MqttError

from .base import BaseTransport

log = logging.getLogger(__name__)


class MQTTTransport(BaseTransport):
    def __init__(self, transport_id: str, options, *, on_message):
        super().__init__(transport_id, on_message=on_message)
        self.options = options
        self._client: Client | None = None

    async def iter_messages(self) -> AsyncIterator[bytes]:
        host = self.options.get("host", "127.0.0.1")
        port = int(self.options.get("port", 1883))
        username = self.options.get("username")
        password = self.options.get("password")
        topic = self.options["topic"]
        qos = int(self.options.get("qos", 1))
        reconnect_interval = int(self.options.get("reconnect_interval", 5))
        while True:
            try:
                async with Client(hostname=host, port=port, username=username, password=password) as client:
                    self._client = client
                    async with client.unfiltered_messages() as messages:
                        await client.subscribe(topic, qos=qos)
                        log.info("transport %s listening on %s", self.transport_id, topic)
                        async for message in messages:
                            yield message.payload
            except MqttError:
                log.exception("transport %s lost connection; retrying", self.transport_id)
                await asyncio.sleep(reconnect_interval)
            finally:
                self._client = None

    async def publish(self, topic: str, data: bytes) -> None:
        client = self._client
        if client is None:
            log.warning("transport %s not connected; dropping reply to %s", self.transport_id, topic)
            return
        await client.publish(topic, data, qos=int(self.options.get("qos", 1)))

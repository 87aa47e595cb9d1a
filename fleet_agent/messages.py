# SPDX-License-Identifier: Apache-2.0
"""Request and response envelopes exchanged with the transport."""
from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fleet_agent.actions.errors import PayloadFormatError
from fleet_agent.actions.runner import load_json


@dataclass(slots=True)
class Request:
    """An inbound command: ``{"method": ..., "arguments": [...], "reply_to": ...}``.

    ``payload`` keeps the raw bytes so the runner can extract the arguments.
    """

    method: str
    payload: bytes
    reply_to: Optional[str] = None
    request_id: Optional[str] = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_bytes(cls, raw: Any) -> "Request":
        payload = ensure_bytes(raw)
        try:
            data = load_json(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise PayloadFormatError(f"request is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise PayloadFormatError("request must be a JSON object")
        method = data.get("method")
        if not isinstance(method, str) or not method:
            raise PayloadFormatError("request method must be a non-empty string")
        reply_to = data.get("reply_to")
        request_id = data.get("id")
        return cls(
            method=method,
            payload=payload,
            reply_to=str(reply_to) if reply_to else None,
            request_id=str(request_id) if request_id is not None else None,
        )


@dataclass(slots=True)
class Response:
    value: Any = None
    exception: Optional[Dict[str, Any]] = None

    @classmethod
    def of_value(cls, value: Any) -> "Response":
        return cls(value=value)

    @classmethod
    def of_exception(cls, message: str, kind: str | None = None, **details: Any) -> "Response":
        exception: Dict[str, Any] = {"message": message}
        if kind:
            exception["kind"] = kind
        exception.update(details)
        return cls(exception=exception)

    @property
    def ok(self) -> bool:
        return self.exception is None

    def to_dict(self) -> Dict[str, Any]:
        if self.exception is not None:
            return {"exception": self.exception}
        return {"value": self.value}

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), default=_jsonable, allow_nan=False).encode("utf-8")


def _jsonable(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, BaseException):
        return str(obj)
    raise TypeError(f"cannot serialize {type(obj).__name__}")


def ensure_bytes(data: Any) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, bytearray):
        return bytes(data)
    if isinstance(data, str):
        return data.encode("utf-8")
    raise TypeError(f"cannot convert {type(data)} to bytes")

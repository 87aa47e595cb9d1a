# SPDX-License-Identifier: Apache-2.0
"""Generic invocation of actions from serialized argument envelopes."""
from __future__ import annotations

import json
import logging
import time
from typing import Any, List

from fleet_agent.metrics import ACTION_LATENCY, ACTION_RUNS

from .base import Action, RunOutcome
from .errors import InvalidSignatureError, PayloadFormatError, RunnerError
from .matcher import match
from .signature import RunSignature

log = logging.getLogger(__name__)


def _reject_constant(token: str) -> Any:
    raise PayloadFormatError(f"payload contains non-JSON number {token}")


def load_json(text: str | bytes) -> Any:
    """``json.loads`` that refuses the ``NaN`` and ``Infinity`` extensions."""
    return json.loads(text, parse_constant=_reject_constant)


def parse_arguments(payload: bytes | bytearray | str) -> List[Any]:
    """Extract the positional ``arguments`` list from a JSON envelope.

    Other top-level keys are ignored; a missing or ``null`` list means no
    arguments.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PayloadFormatError(f"payload is not UTF-8: {exc}") from exc
    elif not isinstance(payload, str):
        raise PayloadFormatError(f"payload must be bytes, got {type(payload).__name__}")
    try:
        envelope = load_json(payload)
    except json.JSONDecodeError as exc:
        raise PayloadFormatError(f"payload is not valid JSON: {exc}") from exc
    if not isinstance(envelope, dict):
        raise PayloadFormatError("payload must be a JSON object")
    arguments = envelope.get("arguments")
    if arguments is None:
        return []
    if not isinstance(arguments, list):
        raise PayloadFormatError(f"arguments must be a list, got {type(arguments).__name__}")
    return arguments


class Runner:
    """Binds envelope arguments to an action's ``run`` and invokes it.

    The runner holds no state between calls; one instance can serve every
    worker concurrently.
    """

    def run(self, action: Action, payload: bytes | bytearray | str) -> RunOutcome:
        name = type(action).__name__
        try:
            arguments = parse_arguments(payload)
            signature = RunSignature.of(action)
            bound = match(signature, arguments)
        except RunnerError as exc:
            ACTION_RUNS.labels(name, exc.kind).inc()
            log.debug("action %s rejected: %s", name, exc)
            raise
        log.debug("running %s with %d argument(s)", signature, len(bound.args))
        return self._invoke(name, "run", action.run, *bound.args)

    def resume(self, action: Action, payload: bytes | bytearray | str | None = None) -> RunOutcome:
        """Re-enter a suspended action. ``payload`` is accepted but unused."""
        name = type(action).__name__
        log.debug("resuming %s", name)
        return self._invoke(name, "resume", action.resume)

    def _invoke(self, name: str, operation: str, fn, *args: Any) -> RunOutcome:
        start = time.perf_counter()
        try:
            returned = fn(*args)
        except Exception:
            ACTION_RUNS.labels(name, "exception").inc()
            raise
        finally:
            ACTION_LATENCY.labels(name, operation).observe((time.perf_counter() - start) * 1000)
        if not isinstance(returned, tuple) or len(returned) != 2:
            ACTION_RUNS.labels(name, InvalidSignatureError.kind).inc()
            raise InvalidSignatureError(name, f"{operation} returned {type(returned).__name__} instead of a (value, error) pair")
        outcome = RunOutcome(*returned)
        ACTION_RUNS.labels(name, "handler_error" if outcome.failed else "ok").inc()
        return outcome

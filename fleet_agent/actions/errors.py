# SPDX-License-Identifier: Apache-2.0
"""Structural errors raised when an action invocation cannot reach its handler."""
from __future__ import annotations

from typing import Any, Dict

from .shapes import RawKind


class DecodeError(ValueError):
    """A raw JSON value does not fit the requested shape."""

    def __init__(self, shape, raw: Any, reason: str | None = None):
        self.shape = shape
        self.raw = raw
        self.reason = reason
        message = f"cannot decode {describe_raw(raw)} into {shape}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class RunnerError(Exception):
    """Base class: the invocation never reached the action's handler."""

    kind = "runner_error"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": str(self)}


class PayloadFormatError(RunnerError):
    kind = "payload_format"


class MissingHandlerError(RunnerError):
    kind = "missing_handler"

    def __init__(self, action_name: str):
        self.action_name = action_name
        super().__init__(f"action {action_name} does not implement run")


class InvalidSignatureError(RunnerError):
    kind = "invalid_signature"

    def __init__(self, action_name: str, reason: str):
        self.action_name = action_name
        self.reason = reason
        super().__init__(f"action {action_name} run signature is invalid: {reason}")


class ArgumentCountError(RunnerError):
    kind = "argument_count"

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"not enough arguments: expected at least {expected}, got {actual}")

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), "expected": self.expected, "actual": self.actual}


class ArgumentTypeError(RunnerError):
    kind = "argument_type"

    def __init__(self, position: int, cause: DecodeError):
        self.position = position
        self.expected = str(cause.shape)
        self.actual = describe_raw(cause.raw)
        super().__init__(f"argument {position}: {cause}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "position": self.position,
            "expected": self.expected,
            "actual": self.actual,
        }


def describe_raw(raw: Any, limit: int = 40) -> str:
    text = repr(raw)
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return f"{RawKind.of(raw).value} {text}"

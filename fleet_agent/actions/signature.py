# SPDX-License-Identifier: Apache-2.0
"""Static description of an action's ``run`` method.

Descriptors are derived once per action class and cached, so the runner does
not inspect the handler again on every invocation.
"""
from __future__ import annotations

import functools
import inspect
import types
import typing
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .errors import InvalidSignatureError, MissingHandlerError
from .shapes import Shape, resolve, shape_for

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    shape: Shape
    variadic: bool = False
    required: bool = True
    default: Any = inspect.Parameter.empty

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty

    def __str__(self) -> str:
        prefix = "*" if self.variadic else ""
        return f"{prefix}{self.name}: {self.shape}"


@dataclass(frozen=True, slots=True)
class RunSignature:
    action_name: str
    parameters: Tuple[Parameter, ...]

    @property
    def variadic(self) -> bool:
        return bool(self.parameters) and self.parameters[-1].variadic

    @property
    def fixed(self) -> Tuple[Parameter, ...]:
        return self.parameters[:-1] if self.variadic else self.parameters

    @property
    def required_count(self) -> int:
        return sum(1 for p in self.fixed if p.required)

    @property
    def variadic_shape(self) -> Optional[Shape]:
        return self.parameters[-1].shape if self.variadic else None

    def __str__(self) -> str:
        return f"{self.action_name}.run({', '.join(str(p) for p in self.parameters)})"

    @classmethod
    def of(cls, action: Any) -> "RunSignature":
        """Return the cached descriptor for ``action``'s class.

        Raises :class:`MissingHandlerError` when there is no ``run`` method and
        :class:`InvalidSignatureError` when it does not declare a
        ``Tuple[value, error]`` return or has parameters that cannot bind
        positionally.
        """
        return _describe(type(action))


@functools.lru_cache(maxsize=None)
def _describe(action_cls: type) -> RunSignature:
    name = action_cls.__name__
    attr = inspect.getattr_static(action_cls, "run", None)
    func = attr.__func__ if isinstance(attr, (staticmethod, classmethod)) else attr
    if func is None or not callable(func):
        raise MissingHandlerError(name)

    try:
        hints = typing.get_type_hints(func)
    except (NameError, TypeError) as exc:
        raise InvalidSignatureError(name, f"unresolvable annotations: {exc}") from exc
    _check_returns(name, hints.get("return", inspect.Parameter.empty))

    params = list(inspect.signature(func).parameters.values())
    if not isinstance(attr, staticmethod):
        params = params[1:]

    described = []
    for param in params:
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            continue
        if param.kind is inspect.Parameter.KEYWORD_ONLY:
            if param.default is inspect.Parameter.empty:
                raise InvalidSignatureError(name, f"keyword-only parameter {param.name} cannot be bound")
            continue
        try:
            shape = resolve(shape_for(hints.get(param.name, inspect.Parameter.empty)))
        except (NameError, TypeError) as exc:
            raise InvalidSignatureError(name, f"parameter {param.name}: {exc}") from exc
        described.append(
            Parameter(
                name=param.name,
                shape=shape,
                variadic=param.kind is inspect.Parameter.VAR_POSITIONAL,
                required=param.kind in _POSITIONAL and param.default is inspect.Parameter.empty,
                default=param.default,
            )
        )
    return RunSignature(action_name=name, parameters=tuple(described))


def _check_returns(name: str, annotation: Any) -> None:
    if annotation is inspect.Parameter.empty:
        raise InvalidSignatureError(name, "run must annotate its (value, error) return")
    args = typing.get_args(annotation)
    if typing.get_origin(annotation) is not tuple or len(args) != 2 or args[1] is Ellipsis:
        raise InvalidSignatureError(name, f"run must return two values, declares {annotation!r}")
    if not is_error_shaped(args[1]):
        raise InvalidSignatureError(name, f"second return value must be an error, declares {args[1]!r}")


def is_error_shaped(annotation: Any) -> bool:
    """True for exception classes and ``Optional`` of them."""
    if isinstance(annotation, type) and typing.get_origin(annotation) is None:
        return issubclass(annotation, BaseException)
    members = [a for a in typing.get_args(annotation) if a is not type(None)]
    return bool(members) and typing.get_origin(annotation) in (typing.Union, types.UnionType) and all(
        is_error_shaped(m) for m in members
    )
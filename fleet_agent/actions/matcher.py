# SPDX-License-Identifier: Apache-2.0
"""Bind a positional list of raw arguments to a run signature."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .decoder import decode
from .errors import ArgumentCountError, ArgumentTypeError, DecodeError
from .signature import RunSignature

log = logging.getLogger(__name__)


@dataclass(slots=True)
class BoundCall:
    """Decoded arguments in declaration order, ready to be splatted into ``run``."""

    fixed: List[Any] = field(default_factory=list)
    variadic: Optional[List[Any]] = None

    @property
    def args(self) -> List[Any]:
        return [*self.fixed, *(self.variadic or ())]


def match(signature: RunSignature, raw_arguments: Sequence[Any]) -> BoundCall:
    """Decode ``raw_arguments`` against ``signature``.

    Arguments beyond what the handler consumes are dropped, and ``null`` for a
    parameter with a default binds that default. For a variadic handler the
    trailing list is always present, empty when nothing remains.
    """
    fixed = signature.fixed
    if len(raw_arguments) < signature.required_count:
        raise ArgumentCountError(signature.required_count, len(raw_arguments))

    bound = BoundCall()
    for position, (param, raw) in enumerate(zip(fixed, raw_arguments)):
        if raw is None and param.has_default:
            bound.fixed.append(param.default)
            continue
        bound.fixed.append(_decode_at(position, raw, param.shape))

    rest = raw_arguments[len(fixed):]
    if signature.variadic:
        element = signature.variadic_shape
        bound.variadic = [_decode_at(len(fixed) + idx, raw, element) for idx, raw in enumerate(rest)]
    elif rest:
        log.debug("%s ignoring %d surplus argument(s)", signature.action_name, len(rest))
    return bound


def _decode_at(position: int, raw: Any, shape) -> Any:
    try:
        return decode(raw, shape)
    except DecodeError as exc:
        raise ArgumentTypeError(position, exc) from exc

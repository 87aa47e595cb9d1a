# SPDX-License-Identifier: Apache-2.0
"""Target shapes for decoding loosely-typed JSON arguments.

A shape is derived once from a Python annotation and describes what a raw
argument must look like to bind to a handler parameter:

- ``int``, ``float``, ``bool``           -> :class:`PrimitiveShape`
- ``str``                                -> :class:`StringShape`
- ``list[X]``, ``Sequence[X]``, ``tuple[X, ...]`` -> :class:`SequenceShape`
- ``dict[str, X]``                       -> :class:`MappingShape`
- dataclasses                            -> :class:`RecordShape`
- ``Optional[X]``                        -> :class:`OptionalShape`
- ``Any`` or no annotation               -> :class:`AnyShape`

Record fields may be renamed on the wire with
``field(metadata={"alias": "pwd"})``.
"""
from __future__ import annotations

import collections.abc
import dataclasses
import enum
import functools
import inspect
import types
import typing
from dataclasses import dataclass
from typing import Any, Tuple

ALIAS_KEY = "alias"

_NONE_TYPE = type(None)
_SEQUENCE_ORIGINS = (list, collections.abc.Sequence, collections.abc.MutableSequence)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


class RawKind(str, enum.Enum):
    """Kinds of values a JSON document can produce."""

    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    UNKNOWN = "unknown"

    @classmethod
    def of(cls, raw: Any) -> "RawKind":
        if raw is None:
            return cls.NULL
        # bool before int: bool is an int subclass
        if isinstance(raw, bool):
            return cls.BOOLEAN
        if isinstance(raw, (int, float)):
            return cls.NUMBER
        if isinstance(raw, str):
            return cls.STRING
        if isinstance(raw, list):
            return cls.ARRAY
        if isinstance(raw, dict):
            return cls.OBJECT
        return cls.UNKNOWN


class Shape:
    __slots__ = ()

    def zero(self) -> Any:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class AnyShape(Shape):
    def zero(self) -> Any:
        return None

    def __str__(self) -> str:
        return "any"


@dataclass(frozen=True, slots=True)
class PrimitiveShape(Shape):
    kind: type

    def zero(self) -> Any:
        return self.kind()

    def __str__(self) -> str:
        return self.kind.__name__


@dataclass(frozen=True, slots=True)
class StringShape(Shape):
    def zero(self) -> str:
        return ""

    def __str__(self) -> str:
        return "str"


@dataclass(frozen=True, slots=True)
class SequenceShape(Shape):
    element: Shape
    container: type = list

    def zero(self) -> Any:
        return self.container()

    def __str__(self) -> str:
        return f"{self.container.__name__}[{self.element}]"


@dataclass(frozen=True, slots=True)
class MappingShape(Shape):
    value: Shape

    def zero(self) -> dict:
        return {}

    def __str__(self) -> str:
        return f"dict[str, {self.value}]"


@dataclass(frozen=True, slots=True)
class OptionalShape(Shape):
    inner: Shape

    def zero(self) -> None:
        return None

    def __str__(self) -> str:
        return f"Optional[{self.inner}]"


@dataclass(frozen=True, slots=True)
class RecordField:
    name: str
    alias: str
    shape: Shape
    default: Any
    default_factory: Any

    def initial(self) -> Any:
        if self.default is not dataclasses.MISSING:
            return self.default
        if self.default_factory is not dataclasses.MISSING:
            return self.default_factory()
        return self.shape.zero()


@dataclass(frozen=True, slots=True)
class RecordShape(Shape):
    cls: type

    @property
    def fields(self) -> Tuple[RecordField, ...]:
        return _record_fields(self.cls)

    def zero(self) -> Any:
        return self.cls(**{f.name: f.initial() for f in self.fields})

    def __str__(self) -> str:
        return f"record {self.cls.__name__}"


@functools.lru_cache(maxsize=None)
def _record_fields(cls: type) -> Tuple[RecordField, ...]:
    # fields are resolved lazily so self-referencing records terminate
    hints = typing.get_type_hints(cls)
    fields = []
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        fields.append(
            RecordField(
                name=f.name,
                alias=f.metadata.get(ALIAS_KEY, f.name),
                shape=shape_for(hints.get(f.name, Any)),
                default=f.default,
                default_factory=f.default_factory,
            )
        )
    return tuple(fields)


def shape_for(annotation: Any) -> Shape:
    """Translate a type annotation into a decode shape.

    Raises :class:`TypeError` for annotations that have no JSON counterpart.
    """
    if annotation in (inspect.Parameter.empty, Any, object):
        return AnyShape()
    if annotation in (bool, int, float):
        return PrimitiveShape(annotation)
    if annotation is str:
        return StringShape()
    if annotation is list:
        return SequenceShape(AnyShape())
    if annotation is dict:
        return MappingShape(AnyShape())
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return RecordShape(annotation)

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if origin is typing.Union or origin is types.UnionType:
        members = [a for a in args if a is not _NONE_TYPE]
        if len(members) == 1 and len(members) < len(args):
            return OptionalShape(shape_for(members[0]))
        raise TypeError(f"unsupported union annotation {annotation!r}")
    if origin in _SEQUENCE_ORIGINS:
        return SequenceShape(shape_for(args[0]) if args else AnyShape())
    if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
        return SequenceShape(shape_for(args[0]), container=tuple)
    if origin in _MAPPING_ORIGINS:
        if args and args[0] is not str:
            raise TypeError(f"mapping keys must be str, got {annotation!r}")
        return MappingShape(shape_for(args[1]) if args else AnyShape())
    raise TypeError(f"unsupported parameter annotation {annotation!r}")


def resolve(shape: Shape, _seen: set | None = None) -> Shape:
    """Resolve every record reachable from ``shape`` so bad field types fail early."""
    seen = set() if _seen is None else _seen
    if isinstance(shape, RecordShape):
        if shape.cls not in seen:
            seen.add(shape.cls)
            for f in shape.fields:
                resolve(f.shape, seen)
    elif isinstance(shape, SequenceShape):
        resolve(shape.element, seen)
    elif isinstance(shape, MappingShape):
        resolve(shape.value, seen)
    elif isinstance(shape, OptionalShape):
        resolve(shape.inner, seen)
    return shape

# SPDX-License-Identifier: Apache-2.0
"""Decode raw JSON values into handler parameter shapes."""
from __future__ import annotations

from typing import Any, Dict, Mapping

from .errors import DecodeError
from .shapes import (
    AnyShape,
    MappingShape,
    OptionalShape,
    PrimitiveShape,
    RawKind,
    RecordShape,
    SequenceShape,
    Shape,
    StringShape,
)


def decode(raw: Any, shape: Shape) -> Any:
    """Return ``raw`` converted to ``shape`` or raise :class:`DecodeError`.

    Kinds are never coerced: a number does not satisfy a string shape and a
    string does not satisfy a numeric one. ``null`` yields the zero value of a
    non-optional shape, the way a JSON decoder leaves a target untouched.
    """
    kind = RawKind.of(raw)
    if isinstance(shape, AnyShape):
        return raw
    if isinstance(shape, OptionalShape):
        return None if kind is RawKind.NULL else decode(raw, shape.inner)
    if kind is RawKind.NULL:
        return shape.zero()
    if isinstance(shape, PrimitiveShape):
        return _decode_primitive(raw, kind, shape)
    if isinstance(shape, StringShape):
        if kind is not RawKind.STRING:
            raise DecodeError(shape, raw)
        return raw
    if isinstance(shape, SequenceShape):
        if kind is not RawKind.ARRAY:
            raise DecodeError(shape, raw)
        return shape.container(_decode_items(raw, shape))
    if isinstance(shape, MappingShape):
        if kind is not RawKind.OBJECT:
            raise DecodeError(shape, raw)
        return {key: _decode_member(value, shape.value, shape, raw, key) for key, value in raw.items()}
    if isinstance(shape, RecordShape):
        if kind is not RawKind.OBJECT:
            raise DecodeError(shape, raw)
        return _decode_record(raw, shape)
    raise TypeError(f"unknown shape {shape!r}")


def _decode_primitive(raw: Any, kind: RawKind, shape: PrimitiveShape) -> Any:
    if shape.kind is bool:
        if kind is not RawKind.BOOLEAN:
            raise DecodeError(shape, raw)
        return raw
    if kind is not RawKind.NUMBER:
        raise DecodeError(shape, raw)
    if shape.kind is int:
        if isinstance(raw, float):
            raise DecodeError(shape, raw, "number is not an integer")
        return raw
    return float(raw)


def _decode_items(raw: list, shape: SequenceShape):
    for idx, item in enumerate(raw):
        yield _decode_member(item, shape.element, shape, raw, idx)


def _decode_member(item: Any, item_shape: Shape, shape: Shape, raw: Any, where) -> Any:
    try:
        return decode(item, item_shape)
    except DecodeError as exc:
        raise DecodeError(shape, raw, f"at [{where!r}]: {exc}") from exc


def _decode_record(raw: Mapping[str, Any], shape: RecordShape) -> Any:
    folded: Dict[str, str] = {}
    for key in raw:
        folded.setdefault(key.lower(), key)
    values: Dict[str, Any] = {}
    for f in shape.fields:
        key = f.alias if f.alias in raw else folded.get(f.alias.lower())
        if key is None:
            values[f.name] = f.initial()
            continue
        values[f.name] = _decode_member(raw[key], f.shape, shape, raw, f.alias)
    return shape.cls(**values)

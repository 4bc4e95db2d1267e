"""
Parameter trees: the JSON-like values that get signed.

Requests and callbacks are decoded into a closed set of node types so the
signer can match on them exhaustively instead of probing arbitrary Python
objects. Conversion from untrusted input happens here, at the boundary; the
signer assumes it is handed a well-formed tree.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Tuple, Union

from lesspay.errors import ParameterTreeError


@dataclass(frozen=True)
class PNull:
    pass


@dataclass(frozen=True)
class PBool:
    value: bool


@dataclass(frozen=True)
class PNumber:
    # int for integral JSON numbers, Decimal for anything written with a fraction or exponent.
    value: Union[int, Decimal, float]


@dataclass(frozen=True)
class PString:
    value: str


@dataclass(frozen=True)
class PMapping:
    entries: Dict[str, "ParameterTree"] = field(default_factory=dict)


@dataclass(frozen=True)
class PSequence:
    items: Tuple["ParameterTree", ...] = ()


ParameterTree = Union[PNull, PBool, PNumber, PString, PMapping, PSequence]

NULL = PNull()


def from_json(value: Any) -> ParameterTree:
    """Convert decoded JSON (or equivalent Python values) into a parameter tree."""
    if isinstance(value, (PNull, PBool, PNumber, PString, PMapping, PSequence)):
        return value
    if value is None:
        return NULL
    # bool first: it is an int subclass.
    if isinstance(value, bool):
        return PBool(value)
    if isinstance(value, int):
        return PNumber(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ParameterTreeError(f"non-finite number cannot be signed: {value!r}")
        return PNumber(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ParameterTreeError(f"non-finite number cannot be signed: {value!r}")
        return PNumber(value)
    if isinstance(value, str):
        return PString(value)
    if isinstance(value, Mapping):
        entries: Dict[str, ParameterTree] = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise ParameterTreeError(f"mapping keys must be strings, got {type(k).__name__}: {k!r}")
            entries[k] = from_json(v)
        return PMapping(entries)
    if isinstance(value, (list, tuple)):
        return PSequence(tuple(from_json(v) for v in value))
    raise ParameterTreeError(f"unsupported value type: {type(value).__name__}")


def _reject_constant(name: str) -> Any:
    raise ParameterTreeError(f"non-finite number cannot be signed: {name}")


def parse_body(raw: Union[bytes, str]) -> ParameterTree:
    """
    Decode a raw JSON request/callback body.

    Decimals are kept exactly as written ("100.00" stays "100.00"). An empty
    body decodes to the null tree; any other non-object top level is rejected.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParameterTreeError(f"body is not valid UTF-8: {e}") from e
    if not raw.strip():
        return NULL
    try:
        decoded = json.loads(raw, parse_float=Decimal, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise ParameterTreeError(f"body is not valid JSON: {e}") from e
    if decoded is None:
        return NULL
    if not isinstance(decoded, dict):
        raise ParameterTreeError(f"body must be a JSON object, got {type(decoded).__name__}")
    return from_json(decoded)


def to_json(tree: ParameterTree) -> Any:
    """Inverse of from_json: plain dict/list/scalars (Decimals are kept as Decimal)."""
    match tree:
        case PNull():
            return None
        case PBool(value=v) | PNumber(value=v) | PString(value=v):
            return v
        case PMapping(entries=entries):
            return {k: to_json(v) for k, v in entries.items()}
        case PSequence(items=items):
            return [to_json(v) for v in items]
    raise ParameterTreeError(f"not a parameter tree node: {tree!r}")


def render_scalar(tree: ParameterTree) -> str:
    """Plain string form of a scalar: no quotes, booleans lowercase."""
    match tree:
        case PNull():
            return "null"
        case PBool(value=v):
            return "true" if v else "false"
        case PNumber(value=v):
            if isinstance(v, float):
                return repr(v)
            return str(v)
        case PString(value=v):
            return v
    raise ParameterTreeError(f"not a scalar node: {tree!r}")


def dumps_compact(tree: ParameterTree) -> str:
    """
    Compact JSON text of a node, keys in their original order.

    This is the generic stringification used for sequences, which the
    signature treats as opaque values. Null-valued object keys are omitted
    at every depth, the way the gateway serializes; bare null items in a
    sequence stay.
    """
    match tree:
        case PString(value=v):
            return json.dumps(v, ensure_ascii=False)
        case PNull() | PBool() | PNumber():
            return render_scalar(tree)
        case PMapping(entries=entries):
            parts = [
                f"{json.dumps(k, ensure_ascii=False)}:{dumps_compact(v)}"
                for k, v in entries.items()
                if not isinstance(v, PNull)
            ]
            return "{" + ",".join(parts) + "}"
        case PSequence(items=items):
            return "[" + ",".join(dumps_compact(v) for v in items) + "]"
    raise ParameterTreeError(f"not a parameter tree node: {tree!r}")

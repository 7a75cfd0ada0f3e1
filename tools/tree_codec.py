"""Canonical JSON codec for condition trees.

``encode`` writes a ``Group`` as compact JSON with keys in canonical order:

    {"type":"group","children":[...],"match_all":true}
    {"type":"condition","operator":"contains","value":"...","comment_content":true,...}

``decode`` is a strict recursive-descent reader. Every node is checked for
key presence and value types before it is constructed, errors name the exact
node kind and key, and nothing is returned unless the whole tree is valid.
Empty documents (``""``, ``{}``, ``[]``, ``null``) decode to ``None``, meaning
"no conditions configured".

Rows written by the older tree format used ``conditions`` for ``children``
and ``condition_type``/``condition_value`` for ``operator``/``value``. Those
names are still read, but only the canonical names are ever written.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import TypeAdapter, ValidationError

from schemas.conditions import ATTRIBUTE_FIELDS, Condition, Group, Node, Operator
from schemas.errors import (
    InvalidChildType,
    InvalidRoot,
    InvalidType,
    MalformedInput,
    MissingKey,
    TreeTooDeep,
)

DEFAULT_MAX_DEPTH = 64

GROUP_KEYS: tuple[str, ...] = ("children", "match_all", "type")
CONDITION_KEYS: tuple[str, ...] = ("operator", "value", *ATTRIBUTE_FIELDS)

# canonical -> legacy, read-only
LEGACY_KEYS: dict[str, str] = {
    "children": "conditions",
    "operator": "condition_type",
    "value": "condition_value",
}

_BOOL = TypeAdapter(bool)


# ----------
# Encoding
# ----------


def encode(group: Group, *, max_depth: int = DEFAULT_MAX_DEPTH) -> str:
    """Encode a root group to canonical JSON text.

    Raises ``TreeTooDeep`` for trees ``decode`` would reject with the same
    ``max_depth``, so anything written can be read back.
    """
    if not isinstance(group, Group):
        raise TypeError(f"Tree root must be a Group, got {type(group).__name__}")
    if group.depth() > max_depth:
        raise TreeTooDeep(max_depth)
    return group.model_dump_json()


def to_data(group: Group, *, max_depth: int = DEFAULT_MAX_DEPTH) -> dict[str, Any]:
    """Return the canonical JSON-compatible mapping for ``group``."""
    return json.loads(encode(group, max_depth=max_depth))


# ----------
# Decoding
# ----------


def decode(text: str | bytes, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Group | None:
    """Decode JSON text into a ``Group``.

    Args:
        text: UTF-8 JSON document.
        max_depth: Maximum group nesting; the root group is depth 1.

    Returns:
        The decoded root group, or ``None`` for an empty document.

    Raises:
        MalformedInput: ``text`` is not valid JSON.
        InvalidRoot: The root is not an object of type ``group``.
        MissingKey: A node lacks a required key.
        InvalidType: A key holds a value of the wrong type.
        InvalidChildType: A child is neither a group nor a condition.
        InvalidOperator: A condition names an unknown operator.
        TreeTooDeep: Groups are nested deeper than ``max_depth``.
    """
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInput(f"Invalid tree, text is not UTF-8: {e}") from e
    if not text.strip():
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedInput(f"Invalid tree, malformed JSON: {e}") from e
    except RecursionError as e:
        raise TreeTooDeep(max_depth) from e
    return decode_data(data, max_depth=max_depth)


def decode_data(data: Any, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Group | None:
    """Decode an already-parsed JSON value (see ``decode``)."""
    if not data:
        return None
    if not isinstance(data, Mapping) or data.get("type") != "group":
        raise InvalidRoot()
    return _parse_group(data, depth=1, max_depth=max_depth)


def _parse_group(obj: Mapping[str, Any], *, depth: int, max_depth: int) -> Group:
    if depth > max_depth:
        raise TreeTooDeep(max_depth)
    _require(obj, GROUP_KEYS, "group")
    if obj["type"] != "group":
        raise InvalidType("group", "type", "must be 'group'")

    raw_children = _get(obj, "children")
    if not isinstance(raw_children, list):
        raise InvalidType("group", "children", "must be a list")
    children = [_parse_node(child, depth=depth, max_depth=max_depth) for child in raw_children]

    return Group(
        children=children,
        match_all=_coerce_bool(obj["match_all"], "group", "match_all"),
    )


def _parse_node(obj: Any, *, depth: int, max_depth: int) -> Node:
    node_type = obj.get("type") if isinstance(obj, Mapping) else None
    if node_type == "group":
        return _parse_group(obj, depth=depth + 1, max_depth=max_depth)
    if node_type == "condition":
        return _parse_condition(obj)
    raise InvalidChildType(
        f"Invalid group child, type must be group or condition, got {node_type!r}"
    )


def _parse_condition(obj: Mapping[str, Any]) -> Condition:
    _require(obj, CONDITION_KEYS, "condition")
    operator = Operator.parse(_get(obj, "operator"))

    value = _get(obj, "value")
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise InvalidType("condition", "value", "must be a string")

    flags = {name: _coerce_bool(obj[name], "condition", name) for name in ATTRIBUTE_FIELDS}
    return Condition(operator=operator, value=value, **flags)


def _require(obj: Mapping[str, Any], keys: tuple[str, ...], node_kind: str) -> None:
    for key in keys:
        if key in obj:
            continue
        legacy = LEGACY_KEYS.get(key)
        if legacy is not None and legacy in obj:
            continue
        raise MissingKey(node_kind, key)


def _get(obj: Mapping[str, Any], key: str) -> Any:
    if key in obj:
        return obj[key]
    return obj[LEGACY_KEYS[key]]


def _coerce_bool(raw: Any, node_kind: str, key: str) -> bool:
    """Lax boolean: accepts true/false, 1/0 and strings like "true"/"false"."""
    try:
        return _BOOL.validate_python(raw)
    except ValidationError:
        raise InvalidType(node_kind, key, f"must be a boolean, got {raw!r}") from None


__all__ = [
    "CONDITION_KEYS",
    "DEFAULT_MAX_DEPTH",
    "GROUP_KEYS",
    "LEGACY_KEYS",
    "decode",
    "decode_data",
    "encode",
    "to_data",
]

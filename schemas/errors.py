"""Errors raised while building or decoding condition trees.

Every error derives from ``ConditionTreeError`` so callers can catch the whole
family at once. ``MissingKey`` and ``InvalidOperator`` carry messages meant to
be shown verbatim to an operator editing raw rule data.

None of these subclass ``ValueError``, so they pass through pydantic
validators unchanged instead of being folded into a ``ValidationError``.
"""

from __future__ import annotations


class ConditionTreeError(Exception):
    """Base class for condition tree errors."""


class MalformedInput(ConditionTreeError):
    """Text could not be parsed as JSON."""


class InvalidRoot(ConditionTreeError):
    """The decoded root is not an object of type ``group``."""

    def __init__(self, message: str = "Invalid tree, root must be a group") -> None:
        super().__init__(message)


class MissingKey(ConditionTreeError):
    """A required key is absent from a group or condition object.

    Attributes:
        node_kind: ``"group"`` or ``"condition"``.
        key: The exact missing key.
    """

    def __init__(self, node_kind: str, key: str) -> None:
        self.node_kind = node_kind
        self.key = key
        super().__init__(f"Invalid {node_kind}, missing key: {key}")


class InvalidType(ConditionTreeError):
    """A key is present but holds a value of the wrong type."""

    def __init__(self, node_kind: str, key: str, detail: str) -> None:
        self.node_kind = node_kind
        self.key = key
        super().__init__(f"Invalid {node_kind}, {key} {detail}")


class InvalidChildType(ConditionTreeError):
    """A group child is neither a group nor a condition."""


class InvalidOperator(ConditionTreeError):
    """An operator outside the fixed set was supplied."""

    def __init__(self, operator: object, allowed: list[str]) -> None:
        self.operator = operator
        super().__init__(
            f"Invalid operator: {operator!s}, valid operators: {', '.join(allowed)}"
        )


class TreeTooDeep(ConditionTreeError):
    """Group nesting exceeded the decoder's bound."""

    def __init__(self, max_depth: int) -> None:
        self.max_depth = max_depth
        super().__init__(f"Invalid tree, groups nested deeper than {max_depth}")

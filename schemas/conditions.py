"""Condition tree schemas.

A rule's logic is a tree rooted at one ``Group``. Groups combine their
children with AND (``match_all``) or OR semantics, and each child is either a
``Condition`` leaf or another ``Group``. Both node types are frozen pydantic
models carrying a literal ``type`` discriminator, so a node is always exactly
one of the two cases and a tree can never contain a cycle.

Field declaration order is the canonical JSON key order used by
``tools.tree_codec.encode``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.errors import InvalidChildType, InvalidOperator

# Comment attributes a condition can be applied to, in canonical order.
ATTRIBUTE_FIELDS: tuple[str, ...] = (
    "comment_content",
    "comment_author",
    "comment_author_email",
    "comment_author_url",
    "comment_author_ip",
    "comment_agent",
)


class Operator(str, Enum):
    CONTAINS = "contains"
    NOT_CONTAIN = "not_contain"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    REGEX = "regex"
    WILDCARD = "wildcard"

    @classmethod
    def values(cls) -> list[str]:
        return [op.value for op in cls]

    @classmethod
    def parse(cls, value: object) -> Operator:
        """Return the operator named by ``value`` or raise ``InvalidOperator``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidOperator(value, cls.values())

    @property
    def negated(self) -> bool:
        return self in (Operator.NOT_CONTAIN, Operator.NOT_EQUALS)


class Condition(BaseModel):
    """Leaf predicate: an operator, a literal, and the attributes it applies to.

    Conditions are immutable. ``with_value`` and ``with_fields`` return
    modified copies for callers assembling a tree step by step.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["condition"] = "condition"
    operator: Operator
    value: str = ""
    comment_content: bool = False
    comment_author: bool = False
    comment_author_email: bool = False
    comment_author_url: bool = False
    comment_author_ip: bool = False
    comment_agent: bool = False

    @field_validator("operator", mode="before")
    @classmethod
    def _known_operator(cls, value: object) -> Operator:
        return Operator.parse(value)

    @classmethod
    def on(cls, operator: Operator | str, value: str, fields: Iterable[str]) -> Condition:
        """Build a condition applied to the named attribute ``fields``."""
        flags = _flags_for(fields)
        return cls(operator=operator, value=value, **flags)

    def with_value(self, value: str) -> Condition:
        return self.model_copy(update={"value": value})

    def with_fields(self, **flags: bool) -> Condition:
        unknown = sorted(set(flags) - set(ATTRIBUTE_FIELDS))
        if unknown:
            raise ValueError(f"Unknown comment attribute(s): {', '.join(unknown)}")
        return self.model_copy(update={k: bool(v) for k, v in flags.items()})

    def selected_fields(self) -> list[str]:
        """Names of the selected attributes, in canonical order."""
        return [name for name in ATTRIBUTE_FIELDS if getattr(self, name)]


class Group(BaseModel):
    """AND/OR combinator over an ordered sequence of child nodes.

    An empty group is well-formed; whether it counts as satisfied is up to the
    matching engine.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["group"] = "group"
    children: tuple[Node, ...] = ()
    match_all: bool = True

    @field_validator("children", mode="before")
    @classmethod
    def _only_nodes(cls, value: object) -> tuple:
        if isinstance(value, (str, bytes)) or not isinstance(value, (Sequence, Iterator)):
            raise InvalidChildType("Group children must be a sequence of nodes")
        children = tuple(value)
        for child in children:
            if not isinstance(child, (Condition, Group)):
                raise InvalidChildType(
                    f"Group children must be Condition or Group, got {type(child).__name__}"
                )
        return children

    def is_match_all(self) -> bool:
        return self.match_all

    def walk(self) -> Iterator[Node]:
        """Yield every descendant node depth-first, in child order."""
        for child in self.children:
            yield child
            if isinstance(child, Group):
                yield from child.walk()

    def conditions(self) -> list[Condition]:
        """All condition leaves under this group."""
        return [node for node in self.walk() if isinstance(node, Condition)]

    def depth(self) -> int:
        """Group nesting depth; a group with no child groups has depth 1."""
        nested = [child.depth() for child in self.children if isinstance(child, Group)]
        return 1 + max(nested, default=0)


Node = Annotated[Union[Condition, Group], Field(discriminator="type")]

Group.model_rebuild()


def _flags_for(fields: Iterable[str]) -> dict[str, bool]:
    selected = set(fields)
    unknown = sorted(selected - set(ATTRIBUTE_FIELDS))
    if unknown:
        raise ValueError(f"Unknown comment attribute(s): {', '.join(unknown)}")
    return {name: name in selected for name in ATTRIBUTE_FIELDS}


__all__ = [
    "ATTRIBUTE_FIELDS",
    "Condition",
    "Group",
    "Node",
    "Operator",
]

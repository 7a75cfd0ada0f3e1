from __future__ import annotations

import pytest
from pydantic import ValidationError

from schemas.conditions import ATTRIBUTE_FIELDS, Condition, Group, Operator
from schemas.errors import InvalidChildType, InvalidOperator


def test_condition_defaults_and_all_flags_present() -> None:
    c = Condition(operator="contains")
    assert c.operator is Operator.CONTAINS
    assert c.value == ""
    dumped = c.model_dump()
    for name in ATTRIBUTE_FIELDS:
        assert dumped[name] is False
    assert c.selected_fields() == []


def test_condition_rejects_unknown_operator() -> None:
    with pytest.raises(InvalidOperator) as ei:
        Condition(operator="sounds_like", value="x")
    assert "sounds_like" in str(ei.value)
    assert "wildcard" in str(ei.value)

    with pytest.raises(InvalidOperator):
        Condition(operator=3)


def test_condition_on_selects_named_fields() -> None:
    c = Condition.on("ends_with", "something", ["comment_agent", "comment_content"])
    assert c.comment_content and c.comment_agent
    assert not c.comment_author
    # Canonical order, not argument order
    assert c.selected_fields() == ["comment_content", "comment_agent"]

    with pytest.raises(ValueError):
        Condition.on("contains", "x", ["comment_body"])


def test_condition_is_immutable_and_copies_on_change() -> None:
    c = Condition(operator="equals", value="a")
    with pytest.raises(ValidationError):
        c.value = "b"  # type: ignore[misc]

    c2 = c.with_value("b").with_fields(comment_author=True)
    assert c.value == "a" and not c.comment_author
    assert c2.value == "b" and c2.comment_author
    with pytest.raises(ValueError):
        c.with_fields(comment_title=True)


def test_condition_structural_equality() -> None:
    a = Condition.on(Operator.REGEX, "^spam", ["comment_content"])
    b = Condition.on("regex", "^spam", ["comment_content"])
    assert a == b
    assert a != b.with_fields(comment_agent=True)


def test_group_rejects_non_node_children() -> None:
    with pytest.raises(InvalidChildType):
        Group(children=[{"type": "condition", "operator": "contains"}])
    with pytest.raises(InvalidChildType):
        Group(children=[Condition(operator="contains"), "oops"])
    with pytest.raises(InvalidChildType):
        Group(children="not a list")


def test_group_preserves_order_and_nesting() -> None:
    c1 = Condition(operator="contains", value="1")
    c2 = Condition(operator="contains", value="2")
    inner = Group(children=[c2], match_all=False)
    root = Group(children=[c1, inner])

    assert root.is_match_all()
    assert not inner.is_match_all()
    assert root.children == (c1, inner)
    assert list(root.walk()) == [c1, inner, c2]
    assert root.conditions() == [c1, c2]
    assert root.depth() == 2
    assert Group().depth() == 1
    assert Group().children == ()

"""Rich renderables for rules and condition trees."""

from __future__ import annotations

from collections.abc import Sequence

from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from schemas.conditions import Condition, Group
from schemas.rules import Rule

_FIELD_LABELS = {
    "comment_content": "content",
    "comment_author": "author",
    "comment_author_email": "email",
    "comment_author_url": "url",
    "comment_author_ip": "ip",
    "comment_agent": "agent",
}


def describe_condition(condition: Condition) -> str:
    fields = ", ".join(_FIELD_LABELS[f] for f in condition.selected_fields()) or "no fields"
    return escape(f"({fields}) {condition.operator.value} {condition.value!r}")


def _group_label(group: Group) -> str:
    return "ALL of" if group.is_match_all() else "ANY of"


def _add_children(branch: Tree, group: Group) -> None:
    for child in group.children:
        if isinstance(child, Group):
            _add_children(branch.add(_group_label(child)), child)
        else:
            branch.add(describe_condition(child))


def render_tree(group: Group, *, title: str | None = None) -> Tree:
    """Build a rich ``Tree`` mirroring the condition tree."""
    label = _group_label(group)
    root = Tree(f"{escape(title)}: {label}" if title else label)
    _add_children(root, group)
    if not group.children:
        root.add("(no conditions)")
    return root


def rules_table(rules: Sequence[Rule], *, title: str = "Moderation Rules") -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Enabled")
    table.add_column("Outcome")
    table.add_column("Conditions", justify="right")
    for rule in rules:
        table.add_row(
            str(rule.id),
            escape(rule.name),
            "yes" if rule.enabled else "no",
            rule.outcome.value,
            str(len(rule.conditions.conditions())),
        )
    return table

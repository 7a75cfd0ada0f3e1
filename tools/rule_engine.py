"""Deterministic comment matcher and YAML/JSON rule loader.

Evaluates condition trees against a comment:

- A condition is tested against each attribute it selects. Positive
  operators match when any selected attribute satisfies them; ``not_contain``
  and ``not_equals`` match only when no selected attribute satisfies the
  positive form. A condition with no selected attribute never matches.
- Text comparisons are case-insensitive. ``regex`` uses ``re.search`` and
  ``wildcard`` uses ``fnmatch`` over the whole attribute.
- A group is an AND over its children when ``match_all`` is set (vacuously
  true when empty) and an OR otherwise (vacuously false when empty).

``evaluate`` returns the first enabled rule, in the given order, whose
non-empty tree matches.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from fnmatch import fnmatchcase
from functools import lru_cache
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from schemas.conditions import Condition, Group, Operator
from schemas.rules import Comment, Rule

logger = structlog.get_logger(__name__)

# -----------------------
# Operator implementations
# -----------------------


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning("invalid_regex_condition", pattern=pattern, error=str(e))
        return None


def _satisfies(operator: Operator, needle: str, text: str) -> bool:
    """Apply the positive form of ``operator`` to one attribute value."""
    if operator is Operator.REGEX:
        compiled = _compile(needle)
        return bool(compiled and compiled.search(text))
    if operator is Operator.WILDCARD:
        return fnmatchcase(text.casefold(), needle.casefold())

    n = needle.casefold()
    t = text.casefold()
    if operator in (Operator.CONTAINS, Operator.NOT_CONTAIN):
        return n in t
    if operator in (Operator.EQUALS, Operator.NOT_EQUALS):
        return n == t
    if operator is Operator.STARTS_WITH:
        return t.startswith(n)
    if operator is Operator.ENDS_WITH:
        return t.endswith(n)
    raise ValueError(f"Unhandled operator: {operator}")


def condition_matches(condition: Condition, comment: Comment) -> bool:
    fields = condition.selected_fields()
    if not fields:
        return False
    hit = any(
        _satisfies(condition.operator, condition.value, comment.attribute(f)) for f in fields
    )
    return not hit if condition.operator.negated else hit


def group_matches(group: Group, comment: Comment) -> bool:
    results = (
        group_matches(child, comment)
        if isinstance(child, Group)
        else condition_matches(child, comment)
        for child in group.children
    )
    return all(results) if group.is_match_all() else any(results)


def rule_matches(rule: Rule, comment: Comment) -> bool:
    """True when ``rule`` is enabled, has conditions, and its tree matches."""
    if not rule.is_enabled() or not rule.conditions.children:
        return False
    return group_matches(rule.conditions, comment)


def evaluate(comment: Comment, rules: Iterable[Rule]) -> Rule | None:
    """Return the first rule that fires for ``comment``, or ``None``.

    Args:
        comment: Comment attributes to test.
        rules: Candidate rules in priority order.

    Returns:
        The first matching rule; its ``outcome`` is the moderation action.
    """
    for rule in rules:
        if rule_matches(rule, comment):
            logger.debug("rule_matched", rule_id=rule.id, outcome=rule.outcome.value)
            return rule
    return None


# -------------
# Rule loading
# -------------


def load_rules_from_file(path: Path) -> list[Rule]:
    """Load rules from a YAML or JSON document.

    The document is a mapping with a ``rules`` list; each entry carries
    ``name``, ``outcome``, optional ``enabled`` and a ``conditions`` tree in
    the canonical JSON shape. Trees are decoded by the strict codec, so codec
    errors (``MissingKey``, ``InvalidOperator``...) propagate unchanged.

    Raises:
        TypeError: The document is not a mapping or ``rules`` is not a list.
        RuntimeError: The document cannot be parsed, or a rule entry fails
            model validation.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    ext = path.suffix.lower()
    looks_json = text.lstrip().startswith("{")

    try:
        if ext == ".json" or (ext not in {".yaml", ".yml"} and looks_json):
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise RuntimeError(f"Invalid rules document: {e}") from e
    if not isinstance(data, dict):
        raise TypeError("Rules document must be a mapping at top-level")

    entries = data.get("rules") or []
    if not isinstance(entries, list):
        raise TypeError("Rules document 'rules' must be a list")

    rules: list[Rule] = []
    for i, entry in enumerate(entries):
        try:
            rules.append(Rule.model_validate(entry))
        except ValidationError as e:
            raise RuntimeError(f"Invalid rule at index {i}: {e}") from e
    logger.info("rules_loaded", path=str(path), count=len(rules))
    return rules

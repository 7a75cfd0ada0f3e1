"""Pytest configuration and shared fixtures.

Ensures the repository root is importable (so tests can import packages like
`cli`, `schemas`, `tools` without an editable install), and provides helpers
for building condition tree JSON by hand.
"""

from __future__ import annotations

import copy
import json
import sys
from pathlib import Path
from typing import Any, Callable

import pytest
import structlog

# Make repo root importable for tests (avoid requiring `pip install -e .`).
_REPO_ROOT = Path(__file__).resolve().parent.parent
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

CONDITION_DATA: dict[str, Any] = {
    "type": "condition",
    "operator": "ends_with",
    "value": "something",
    "comment_content": True,
    "comment_author": False,
    "comment_author_email": False,
    "comment_author_url": False,
    "comment_author_ip": False,
    "comment_agent": True,
}


@pytest.fixture
def condition_data() -> dict[str, Any]:
    """A fresh, valid condition object as parsed JSON."""
    return copy.deepcopy(CONDITION_DATA)


@pytest.fixture
def tree_json() -> Callable[..., str]:
    """Factory wrapping condition/group objects in a root group document.

    Example:
        tree_json([cond], match_all=False)
    """

    def _make(children: list[Any], *, match_all: Any = True) -> str:
        return json.dumps({"type": "group", "children": children, "match_all": match_all})

    return _make


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo logging configuration applied by CLI invocations."""
    yield
    structlog.reset_defaults()

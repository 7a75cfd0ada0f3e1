"""SQLite-backed rule repository.

Persists one row per rule. The condition tree is stored as canonical JSON in
a single ``rule_conditions`` column and decoded with the strict tree codec on
every read, so a corrupted row surfaces as a ``ConditionTreeError`` rather
than a half-built rule.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog

from schemas.conditions import Group
from schemas.rules import Outcome, Rule, utcnow
from tools import tree_codec

logger = structlog.get_logger(__name__)

TABLE_NAME = "comment_moderation_rules"

_COLUMNS = "id, rule_name, rule_enabled, rule_conditions, outcome, created, updated"


class RuleNotFound(LookupError):
    """No stored rule has the requested id."""

    def __init__(self, rule_id: int) -> None:
        self.rule_id = rule_id
        super().__init__(f"Rule {rule_id} not found")


class RuleStore:
    """SQLite rule store.

    Creates the rules table if it does not exist. Uses WAL for durability.
    Concurrent writers are last-write-wins.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute(
            (
                f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} (\n"
                "  id INTEGER PRIMARY KEY AUTOINCREMENT,\n"
                "  rule_name TEXT NOT NULL,\n"
                "  rule_enabled INTEGER NOT NULL DEFAULT 1,\n"
                "  rule_conditions TEXT NOT NULL,\n"
                "  outcome TEXT NOT NULL,\n"
                "  created TEXT NOT NULL,\n"
                "  updated TEXT NOT NULL\n"
                ")"
            )
        )
        self._conn.commit()

    def _row_to_rule(self, row: tuple) -> Rule:
        tree = tree_codec.decode(row[3])
        return Rule(
            id=int(row[0]),
            name=str(row[1]),
            enabled=bool(row[2]),
            conditions=tree if tree is not None else Group(),
            outcome=Outcome(row[4]),
            created=datetime.fromisoformat(row[5]),
            updated=datetime.fromisoformat(row[6]),
        )

    def get(self, rule_id: int) -> Optional[Rule]:
        """Return the rule with ``rule_id`` or ``None``."""
        cur = self._conn.execute(
            f"SELECT {_COLUMNS} FROM {TABLE_NAME} WHERE id = ?",
            (rule_id,),
        )
        row = cur.fetchone()
        return self._row_to_rule(row) if row else None

    def all(self) -> List[Rule]:
        """Return all rules in id order."""
        cur = self._conn.execute(f"SELECT {_COLUMNS} FROM {TABLE_NAME} ORDER BY id ASC")
        return [self._row_to_rule(r) for r in cur.fetchall()]

    def enabled(self) -> List[Rule]:
        """Return enabled rules in id order."""
        cur = self._conn.execute(
            f"SELECT {_COLUMNS} FROM {TABLE_NAME} WHERE rule_enabled = 1 ORDER BY id ASC"
        )
        return [self._row_to_rule(r) for r in cur.fetchall()]

    def count(self) -> int:
        cur = self._conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}")
        (val,) = cur.fetchone()
        return int(val)

    def upsert(self, rule: Rule) -> Rule:
        """Insert a new rule (``id`` is ``None``) or update an existing one.

        Returns:
            A copy of ``rule`` carrying its stored id and ``updated`` stamp.

        Raises:
            RuleNotFound: ``rule.id`` is set but no such row exists.
            TreeTooDeep: The tree is nested deeper than the codec can read back.
        """
        return self._update(rule) if rule.id is not None else self._insert(rule)

    def _insert(self, rule: Rule) -> Rule:
        now = utcnow()
        cur = self._conn.execute(
            (
                f"INSERT INTO {TABLE_NAME} "
                "(rule_name, rule_enabled, rule_conditions, outcome, created, updated) "
                "VALUES (?, ?, ?, ?, ?, ?)"
            ),
            (
                rule.name,
                int(rule.enabled),
                tree_codec.encode(rule.conditions),
                rule.outcome.value,
                rule.created.isoformat(),
                now.isoformat(),
            ),
        )
        self._conn.commit()
        rule_id = int(cur.lastrowid)
        logger.info("rule_inserted", rule_id=rule_id, name=rule.name)
        return rule.model_copy(update={"id": rule_id, "updated": now})

    def _update(self, rule: Rule) -> Rule:
        now = utcnow()
        cur = self._conn.execute(
            (
                f"UPDATE {TABLE_NAME} SET rule_name = ?, rule_enabled = ?, "
                "rule_conditions = ?, outcome = ?, updated = ? WHERE id = ?"
            ),
            (
                rule.name,
                int(rule.enabled),
                tree_codec.encode(rule.conditions),
                rule.outcome.value,
                now.isoformat(),
                rule.id,
            ),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            raise RuleNotFound(rule.id)  # type: ignore[arg-type]
        logger.info("rule_updated", rule_id=rule.id, name=rule.name)
        return rule.model_copy(update={"updated": now})

    def set_enabled(self, rule_id: int, enabled: bool) -> Rule:
        """Toggle a rule on or off and return the stored result."""
        rule = self.get(rule_id)
        if rule is None:
            raise RuleNotFound(rule_id)
        return self.upsert(rule.model_copy(update={"enabled": enabled}))

    def delete(self, rule_id: int) -> None:
        cur = self._conn.execute(f"DELETE FROM {TABLE_NAME} WHERE id = ?", (rule_id,))
        self._conn.commit()
        if cur.rowcount == 0:
            raise RuleNotFound(rule_id)
        logger.info("rule_deleted", rule_id=rule_id)

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        self._conn.close()

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

from typer.testing import CliRunner

from cli.main import app
from storage.rule_store import TABLE_NAME
from tools import tree_codec

runner = CliRunner()

CONDITION = {
    "type": "condition",
    "operator": "contains",
    "value": "casino",
    "comment_content": True,
    "comment_author": False,
    "comment_author_email": False,
    "comment_author_url": False,
    "comment_author_ip": False,
    "comment_agent": False,
}


def _write_tree(path: Path, children: list, match_all: bool = True) -> Path:
    path.write_text(
        json.dumps({"type": "group", "children": children, "match_all": match_all}),
        encoding="utf-8",
    )
    return path


def _add(tmp_path: Path, db: Path, name: str = "casino spam", outcome: str = "spam") -> None:
    tree = _write_tree(tmp_path / f"{name.replace(' ', '_')}.json", [CONDITION])
    res = runner.invoke(
        app, ["add", name, "--outcome", outcome, "--tree", str(tree), "--db", str(db)]
    )
    assert res.exit_code == 0, res.stdout


def test_add_list_show_export(tmp_path: Path) -> None:
    db = tmp_path / "rules.db"
    _add(tmp_path, db)

    res = runner.invoke(app, ["list", "--db", str(db)])
    assert res.exit_code == 0
    assert "Moderation Rules" in res.stdout
    assert "casino spam" in res.stdout

    res = runner.invoke(app, ["show", "1", "--db", str(db)])
    assert res.exit_code == 0
    assert "ALL of" in res.stdout
    assert "contains 'casino'" in res.stdout

    res = runner.invoke(app, ["export", "1", "--db", str(db)])
    assert res.exit_code == 0
    group = tree_codec.decode(res.stdout.strip())
    assert group is not None and group.conditions()[0].value == "casino"


def test_list_empty_and_unknown_rule(tmp_path: Path) -> None:
    db = tmp_path / "rules.db"
    res = runner.invoke(app, ["list", "--db", str(db)])
    assert res.exit_code == 0
    assert "No rules configured" in res.stdout

    res = runner.invoke(app, ["show", "9", "--db", str(db)])
    assert res.exit_code == 1
    assert "Rule 9 not found" in res.stdout


def test_validate_reports_missing_key_verbatim(tmp_path: Path) -> None:
    broken = dict(CONDITION)
    del broken["comment_author_url"]
    tree = _write_tree(tmp_path / "tree.json", [broken])

    res = runner.invoke(app, ["validate", str(tree)])
    assert res.exit_code == 1
    assert "Invalid condition, missing key: comment_author_url" in res.stdout


def test_validate_reports_corruption_and_success(tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text('{"type":"condition"}', encoding="utf-8")
    res = runner.invoke(app, ["validate", str(bad)])
    assert res.exit_code == 1
    assert "Corrupted rule data" in res.stdout

    inner = {"type": "group", "children": [], "match_all": False}
    good = _write_tree(tmp_path / "good.json", [CONDITION, inner])
    res = runner.invoke(app, ["validate", str(good)])
    assert res.exit_code == 0
    assert "Valid tree" in res.stdout
    assert "depth 2" in res.stdout

    empty = tmp_path / "empty.json"
    empty.write_text("{}", encoding="utf-8")
    res = runner.invoke(app, ["validate", str(empty)])
    assert res.exit_code == 0
    assert "Empty tree" in res.stdout


def test_check_enable_disable_delete(tmp_path: Path) -> None:
    db = tmp_path / "rules.db"
    _add(tmp_path, db)

    res = runner.invoke(app, ["check", "--content", "Best CASINO bonus", "--db", str(db)])
    assert res.exit_code == 0
    assert "Outcome: spam" in res.stdout

    res = runner.invoke(app, ["disable", "1", "--db", str(db)])
    assert res.exit_code == 0
    res = runner.invoke(app, ["check", "--content", "Best CASINO bonus", "--db", str(db)])
    assert "Outcome: none" in res.stdout

    res = runner.invoke(app, ["enable", "1", "--db", str(db)])
    assert res.exit_code == 0
    res = runner.invoke(app, ["check", "--content", "hello", "--db", str(db)])
    assert "Outcome: none" in res.stdout

    res = runner.invoke(app, ["delete", "1", "--db", str(db)])
    assert res.exit_code == 0
    res = runner.invoke(app, ["delete", "1", "--db", str(db)])
    assert res.exit_code == 1


def test_import_rules_file(tmp_path: Path) -> None:
    db = tmp_path / "rules.db"
    doc = {
        "rules": [
            {
                "name": "casino",
                "outcome": "trash",
                "conditions": {"type": "group", "children": [CONDITION], "match_all": True},
            },
            {"id": 99, "name": "empty", "outcome": "approve", "conditions": {}},
        ]
    }
    rules_file = tmp_path / "rules.json"
    rules_file.write_text(json.dumps(doc), encoding="utf-8")

    res = runner.invoke(app, ["import", str(rules_file), "--db", str(db)])
    assert res.exit_code == 0, res.stdout
    assert "Imported 2 rules" in res.stdout

    res = runner.invoke(app, ["check", "--content", "casino night", "--db", str(db)])
    assert "Outcome: trash" in res.stdout


def test_corrupted_row_is_reported(tmp_path: Path) -> None:
    db = tmp_path / "rules.db"
    _add(tmp_path, db)
    conn = sqlite3.connect(str(db))
    conn.execute(f"UPDATE {TABLE_NAME} SET rule_conditions = '{{not json'")
    conn.commit()
    conn.close()

    res = runner.invoke(app, ["list", "--db", str(db)])
    assert res.exit_code == 1
    assert "Corrupted rule data" in res.stdout


def test_db_path_from_environment(tmp_path: Path) -> None:
    db = tmp_path / "env.db"
    _add(tmp_path, db)
    res = runner.invoke(app, ["list"], env={"COMMENT_MODERATION_DB": str(db)})
    assert res.exit_code == 0
    assert "casino spam" in res.stdout


def test_import_unparseable_rules_file(tmp_path: Path) -> None:
    db = tmp_path / "rules.db"
    for name, text in (("rules.json", '{"rules": ['), ("rules.yaml", "rules: [unclosed\n  - {")):
        broken = tmp_path / name
        broken.write_text(text, encoding="utf-8")

        res = runner.invoke(app, ["import", str(broken), "--db", str(db)])
        assert res.exit_code == 1
        assert isinstance(res.exception, SystemExit)
        assert "Invalid rules document" in res.stdout
        assert "Traceback" not in res.stdout

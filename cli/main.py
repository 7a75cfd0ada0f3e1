"""Comment moderation CLI entrypoint.

Commands:
- list / show: inspect stored rules and their condition trees
- validate: check a condition tree JSON file without storing it
- add / import: store rules from a tree file or a YAML/JSON rules document
- export: print a rule's canonical tree JSON
- enable / disable / delete: manage stored rules
- check: run a comment through the enabled rules and print the outcome
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.markup import escape

from cli.render import render_tree, rules_table
from schemas.conditions import Group
from schemas.errors import ConditionTreeError, InvalidOperator, MissingKey
from schemas.rules import Comment, Outcome, Rule
from storage.rule_store import RuleNotFound, RuleStore
from tools import rule_engine, tree_codec

app = typer.Typer(
    add_completion=False, help="Comment moderation rules: build, validate and test condition trees"
)
console = Console()
logger = structlog.get_logger(__name__)

DB_ENVVAR = "COMMENT_MODERATION_DB"


def default_db_path() -> Path:
    """Return the default path to the rules SQLite database.

    Returns:
        Path: Path to `~/.comment-moderation/rules.db`.
    """
    base = Path.home() / ".comment-moderation"
    base.mkdir(parents=True, exist_ok=True)
    return base / "rules.db"


def configure_logging(verbose: bool = False) -> None:
    """Send structlog output to stderr, keeping stdout for command output."""
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


def _open_store(db: Path | None) -> RuleStore:
    return RuleStore(db or default_db_path())


def _report_tree_error(err: ConditionTreeError) -> None:
    # Field-level problems are meant to be fixed by the operator directly
    if isinstance(err, (MissingKey, InvalidOperator)):
        console.print(f"[red]{escape(str(err))}[/red]")
    else:
        console.print(f"[red]Corrupted rule data:[/red] {escape(str(err))}")


def _read_tree(path: Path) -> Group | None:
    try:
        return tree_codec.decode(path.read_text(encoding="utf-8"))
    except ConditionTreeError as e:
        _report_tree_error(e)
        raise typer.Exit(code=1)


def _get_rule(store: RuleStore, rule_id: int) -> Rule:
    try:
        rule = store.get(rule_id)
    except ConditionTreeError as e:
        _report_tree_error(e)
        raise typer.Exit(code=1)
    if rule is None:
        console.print(f"[red]Rule {rule_id} not found.[/red]")
        raise typer.Exit(code=1)
    return rule


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose)


@app.command("list")
def list_rules(
    db: Path | None = typer.Option(None, "--db", envvar=DB_ENVVAR, help="Path to rules DB"),
) -> None:
    """List stored rules."""
    store = _open_store(db)
    try:
        rules = store.all()
    except ConditionTreeError as e:
        _report_tree_error(e)
        raise typer.Exit(code=1)
    finally:
        store.close()

    if not rules:
        console.print("No rules configured.")
        return
    console.print(rules_table(rules))


@app.command()
def show(
    rule_id: int = typer.Argument(..., help="Rule id"),
    db: Path | None = typer.Option(None, "--db", envvar=DB_ENVVAR, help="Path to rules DB"),
) -> None:
    """Show a rule and its condition tree."""
    store = _open_store(db)
    try:
        rule = _get_rule(store, rule_id)
    finally:
        store.close()

    state = "enabled" if rule.enabled else "disabled"
    console.print(
        f"Rule {rule.id}: {escape(rule.name)} ({state}) -> {rule.outcome.value}"
    )
    console.print(render_tree(rule.conditions, title="Conditions"))


@app.command()
def validate(
    path: Path = typer.Argument(..., exists=True, readable=True, help="Tree JSON file"),
) -> None:
    """Decode a condition tree file and report the first problem found."""
    tree = _read_tree(path)
    if tree is None:
        console.print("Empty tree (no conditions configured).")
        return
    console.print(render_tree(tree))
    console.print(
        f"[green]Valid tree:[/green] {len(tree.conditions())} conditions, depth {tree.depth()}"
    )


@app.command()
def add(
    name: str = typer.Argument(..., help="Rule name"),
    outcome: Outcome = typer.Option(..., "--outcome", case_sensitive=False),
    tree: Path = typer.Option(..., "--tree", exists=True, readable=True, help="Tree JSON file"),
    disabled: bool = typer.Option(False, "--disabled", help="Store the rule disabled"),
    db: Path | None = typer.Option(None, "--db", envvar=DB_ENVVAR, help="Path to rules DB"),
) -> None:
    """Store a new rule built from a tree file."""
    group = _read_tree(tree) or Group()
    try:
        rule = Rule(name=name, enabled=not disabled, conditions=group, outcome=outcome)
    except ValueError as e:
        console.print(f"[red]Invalid rule:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)

    store = _open_store(db)
    try:
        saved = store.upsert(rule)
    finally:
        store.close()
    console.print(f"Saved rule {saved.id}: {escape(saved.name)}")


@app.command("import")
def import_rules(
    path: Path = typer.Argument(..., exists=True, readable=True, help="YAML or JSON rules file"),
    db: Path | None = typer.Option(None, "--db", envvar=DB_ENVVAR, help="Path to rules DB"),
) -> None:
    """Import every rule from a rules document as new rules."""
    try:
        rules = rule_engine.load_rules_from_file(path)
    except ConditionTreeError as e:
        _report_tree_error(e)
        raise typer.Exit(code=1)
    except (TypeError, RuntimeError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    store = _open_store(db)
    try:
        saved = [store.upsert(r.model_copy(update={"id": None})) for r in rules]
    finally:
        store.close()
    console.print(f"Imported {len(saved)} rules.")


@app.command()
def export(
    rule_id: int = typer.Argument(..., help="Rule id"),
    db: Path | None = typer.Option(None, "--db", envvar=DB_ENVVAR, help="Path to rules DB"),
) -> None:
    """Print a rule's condition tree as canonical JSON."""
    store = _open_store(db)
    try:
        rule = _get_rule(store, rule_id)
    finally:
        store.close()
    typer.echo(tree_codec.encode(rule.conditions))


def _set_enabled(rule_id: int, enabled: bool, db: Path | None) -> None:
    store = _open_store(db)
    try:
        rule = store.set_enabled(rule_id, enabled)
    except RuleNotFound as e:
        console.print(f"[red]{e}.[/red]")
        raise typer.Exit(code=1)
    except ConditionTreeError as e:
        _report_tree_error(e)
        raise typer.Exit(code=1)
    finally:
        store.close()
    console.print(f"Rule {rule.id} {'enabled' if enabled else 'disabled'}.")


@app.command()
def enable(
    rule_id: int = typer.Argument(..., help="Rule id"),
    db: Path | None = typer.Option(None, "--db", envvar=DB_ENVVAR, help="Path to rules DB"),
) -> None:
    """Enable a rule."""
    _set_enabled(rule_id, True, db)


@app.command()
def disable(
    rule_id: int = typer.Argument(..., help="Rule id"),
    db: Path | None = typer.Option(None, "--db", envvar=DB_ENVVAR, help="Path to rules DB"),
) -> None:
    """Disable a rule."""
    _set_enabled(rule_id, False, db)


@app.command()
def delete(
    rule_id: int = typer.Argument(..., help="Rule id"),
    db: Path | None = typer.Option(None, "--db", envvar=DB_ENVVAR, help="Path to rules DB"),
) -> None:
    """Delete a rule."""
    store = _open_store(db)
    try:
        store.delete(rule_id)
    except RuleNotFound as e:
        console.print(f"[red]{e}.[/red]")
        raise typer.Exit(code=1)
    finally:
        store.close()
    console.print(f"Deleted rule {rule_id}.")


@app.command()
def check(
    content: str = typer.Option("", "--content", help="Comment text"),
    author: str = typer.Option("", "--author", help="Author name"),
    email: str = typer.Option("", "--email", help="Author email"),
    url: str = typer.Option("", "--url", help="Author URL"),
    ip: str = typer.Option("", "--ip", help="Author IP"),
    agent: str = typer.Option("", "--agent", help="User agent"),
    db: Path | None = typer.Option(None, "--db", envvar=DB_ENVVAR, help="Path to rules DB"),
) -> None:
    """Run a comment through the enabled rules and print the outcome."""
    comment = Comment(
        comment_content=content,
        comment_author=author,
        comment_author_email=email,
        comment_author_url=url,
        comment_author_ip=ip,
        comment_agent=agent,
    )
    store = _open_store(db)
    try:
        rules = store.enabled()
    except ConditionTreeError as e:
        _report_tree_error(e)
        raise typer.Exit(code=1)
    finally:
        store.close()

    rule = rule_engine.evaluate(comment, rules)
    if rule is None:
        console.print("Outcome: none")
        return
    console.print(f"Outcome: {rule.outcome.value} (rule {rule.id}: {escape(rule.name)})")


def main() -> int:
    """Entry point for `python -m cli.main`."""
    app()
    return 0


if __name__ == "__main__":
    sys.exit(main())

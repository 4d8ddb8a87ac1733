"""kasten CLI — a Zettelkasten of linked notes kept in a directory.

Commands:
    kasten init                 create an empty store
    kasten new [--no-parent]    pick parents, write a new note in $EDITOR
    kasten edit                 pick a note and edit it in $EDITOR
    kasten graph                print the link graph as Graphviz DOT
    kasten list                 list every note (date, id, title)
    kasten show ID              print a note body
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

import click

from kasten.config import KastenConfig, load_config
from kasten.directory import KastenDirectory
from kasten.editor import Editor
from kasten.errors import KastenError
from kasten.logging_setup import setup_logging
from kasten.picker import Picker, parse_picker_line

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@dataclass
class Session:
    """Per-invocation state shared by the commands."""

    config: KastenConfig
    editor: Editor | None = None
    picker: Picker | None = None

    def get_editor(self) -> Editor:
        if self.editor is None:
            self.editor = self.config.make_editor()
        return self.editor

    def get_picker(self) -> Picker:
        if self.picker is None:
            self.picker = self.config.make_picker()
        return self.picker


@contextlib.contextmanager
def _errors() -> Iterator[None]:
    try:
        yield
    except KastenError as exc:
        raise click.ClickException(str(exc)) from exc


def _open(session: Session) -> KastenDirectory:
    return KastenDirectory.open(session.config.root)


def _pick(session: Session, directory: KastenDirectory, multi: bool) -> list[UUID]:
    entries = directory.kasten.picker_entries()
    selected = session.get_picker().pick(entries, multi=multi)
    return [parse_picker_line(line) for line in selected]


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--path",
    "-p",
    "root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Store directory (default: config file, $KASTEN_ROOT or ~/.zettelkasten)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
@click.version_option(package_name="kasten")
@click.pass_context
def cli(ctx: click.Context, root: Path | None, verbose: bool) -> None:
    """kasten — a Zettelkasten of linked notes."""
    overrides = ctx.obj if isinstance(ctx.obj, dict) else {}
    with _errors():
        cfg = load_config()
    if root is not None:
        cfg.root = root.expanduser()
    try:
        setup_logging(logging.DEBUG if verbose else cfg.log_level)
    except ValueError as exc:
        raise click.ClickException(f"Invalid log_level {cfg.log_level!r}") from exc
    logger.debug("store root: %s", cfg.root)
    ctx.obj = Session(cfg, editor=overrides.get("editor"), picker=overrides.get("picker"))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--force", is_flag=True, help="Overwrite an existing index with an empty one")
@click.pass_obj
def init(session: Session, force: bool) -> None:
    """Initialize a new, empty note store."""
    with _errors():
        directory = KastenDirectory.init(session.config.root, force=force)
    click.echo(f"Initialized empty note store in {directory.root}")


@cli.command()
@click.option("--no-parent", is_flag=True, help="Create a root note without picking parents")
@click.pass_obj
def new(session: Session, no_parent: bool) -> None:
    """Create a new note, linked below the picked parents."""
    with _errors():
        directory = _open(session)
        parents = [] if no_parent else _pick(session, directory, multi=True)
        id = directory.new_note(parents)
        # Persist first so the note survives an editor failure.
        directory.save()
        directory.edit_note(id, session.get_editor())
        directory.save()
    click.echo(str(id))


@cli.command()
@click.pass_obj
def edit(session: Session) -> None:
    """Pick an existing note and edit it."""
    with _errors():
        directory = _open(session)
        selected = _pick(session, directory, multi=False)
        if not selected:
            raise click.ClickException("No note selected")
        note = directory.edit_note(selected[0], session.get_editor())
        directory.save()
    click.echo(f"Updated {note.id}  {note.title}")


@cli.command()
@click.pass_obj
def graph(session: Session) -> None:
    """Print the link graph in Graphviz DOT format."""
    with _errors():
        directory = _open(session)
    click.echo(directory.kasten.render_graph(), nl=False)


@cli.command("list")
@click.pass_obj
def list_notes(session: Session) -> None:
    """List every note, oldest first."""
    with _errors():
        directory = _open(session)
    metas = sorted(directory.kasten.meta_data.values(), key=lambda m: m.creation_date)
    for meta in metas:
        click.echo(f"{meta.creation_date:%Y-%m-%d %H:%M}  {meta.id}  {meta.title}")


@cli.command()
@click.argument("note_id", type=click.UUID)
@click.pass_obj
def show(session: Session, note_id: UUID) -> None:
    """Print the body of note NOTE_ID."""
    with _errors():
        directory = _open(session)
        note = directory.load_note(note_id)
    click.echo(note.body, nl=not note.body.endswith("\n"))


def main() -> None:
    cli()

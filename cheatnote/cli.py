"""
CLI interface for cheatnote.

Usage:
    cheatnote add "Git status" "git status -s" "git,cli"
    cheatnote list git -i
    cheatnote edit 3 --tags ""
    cheatnote delete 3
"""

import json
import os
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from . import __version__
from .config import (
    CheatnoteConfig,
    DB_ENV_VAR,
    get_config_dir,
    get_snapshot_path,
    load_config,
    load_or_create_config,
)
from .csv_io import DEFAULT_EXPORT_FILENAME, export_csv, import_csv
from .errors import SnapshotWriteError, StoreFullError
from .logging_config import (
    configure_ops_log,
    configure_quiet_mode,
    enable_debug_mode,
    remove_ops_log,
)
from .note_store import NoteStore
from .search import SearchQuery, filter_notes
from .snapshot import load_snapshot, save_snapshot, snapshot_size
from .types import (
    MAX_CONTENT_LEN,
    MAX_NOTE_ID,
    MAX_TAGS_LEN,
    MAX_TITLE_LEN,
    Note,
    format_timestamp,
    text_fits,
    validate_note_fields,
)


# Configure quiet mode by default
# Set CHEATNOTE_VERBOSE=1 to enable debug mode via environment
if os.environ.get("CHEATNOTE_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        typer.echo(f"cheatnote {__version__}")
        raise typer.Exit()


# Global state for CLI options (reset on every invocation)
_json_output = False
_color: Optional[bool] = None
_db_override: Optional[Path] = None

# Commands whose changes go to the operations log
_MUTATING_COMMANDS = {"add", "edit", "delete", "del", "import"}


def _get_json_output() -> bool:
    return _json_output


def _get_db_path() -> Path:
    return _db_override if _db_override is not None else get_snapshot_path()


app = typer.Typer(
    name="cheatnote",
    help="Fast snippet and note manager.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


# -----------------------------------------------------------------------------
# Messages
# -----------------------------------------------------------------------------

def _echo(message: str = "", err: bool = False) -> None:
    typer.echo(message, err=err, color=_color)


def _success(message: str) -> None:
    _echo(f"{typer.style('✓', fg=typer.colors.GREEN)} {message}")


def _info(message: str) -> None:
    _echo(f"{typer.style('Info:', fg=typer.colors.BLUE)} {message}")


def _fail(message: str, code: int = 1) -> None:
    _echo(f"{typer.style('Error:', fg=typer.colors.RED)} {message}", err=True)
    raise typer.Exit(code)


# -----------------------------------------------------------------------------
# Output Formatting
#
# Two text layouts, chosen by --compact:
#   full:    boxed note with content lines and timeline
#   compact: header line plus the first content line
#
# JSON output (--json) replaces both.
# -----------------------------------------------------------------------------

def _format_header(note: Note, show_id: bool) -> str:
    parts = []
    if show_id:
        parts.append(typer.style(f"[{note.id}]", fg=typer.colors.YELLOW))
    parts.append(typer.style(note.title, bold=True))
    if note.tags:
        parts.append(typer.style(f"({note.tags})", fg=typer.colors.MAGENTA))
    return " ".join(parts)


def format_note_full(note: Note, show_id: bool = True) -> str:
    """Boxed rendering: header, content lines, timestamps."""
    bar = typer.style("│", fg=typer.colors.BLUE)
    lines = [
        typer.style("╭─ ", fg=typer.colors.BLUE) + _format_header(note, show_id),
        typer.style("├─ Content:", fg=typer.colors.BLUE),
    ]
    if note.content:
        lines.extend(f"{bar}  {line}" for line in note.content.split("\n"))
    lines.append(typer.style("├─ Timeline:", fg=typer.colors.BLUE))
    lines.append(f"{bar}  {typer.style('Created:', dim=True)} {format_timestamp(note.created_at)}")
    lines.append(f"{bar}  {typer.style('Modified:', dim=True)} {format_timestamp(note.modified_at)}")
    lines.append(typer.style("╰─", fg=typer.colors.BLUE))
    return "\n".join(lines) + "\n"


def format_note_compact(note: Note, show_id: bool = True) -> str:
    """Header line and the first line of content."""
    lines = [_format_header(note, show_id)]
    if note.content:
        lines.append("  " + typer.style(note.content.split("\n", 1)[0], dim=True))
    return "\n".join(lines) + "\n"


# -----------------------------------------------------------------------------
# Store access
# -----------------------------------------------------------------------------

def _get_config() -> CheatnoteConfig:
    try:
        return load_config(get_config_dir())
    except (OSError, ValueError) as e:
        _fail(str(e))


def _attach_ops_log(ctx: typer.Context, path: Path) -> None:
    """Record mutations in the operations log for the rest of this command."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = configure_ops_log(path.parent)
    except OSError:
        return  # Never block normal operation
    ctx.call_on_close(lambda: remove_ops_log(handler))


def _open_store() -> NoteStore:
    return load_snapshot(_get_db_path(), initial_capacity=_get_config().initial_capacity)


def _save_store(store: NoteStore) -> None:
    try:
        save_snapshot(store, _get_db_path())
    except SnapshotWriteError as e:
        _fail(str(e))


def _parse_id(value: str) -> int:
    try:
        note_id = int(value)
    except ValueError:
        _fail("Invalid note ID")
    if not 0 < note_id <= MAX_NOTE_ID:
        _fail("Invalid note ID")
    return note_id


def _read_content(content: Optional[str]) -> Optional[str]:
    """'-' means read the content from stdin."""
    if content == "-":
        return sys.stdin.read()
    return content


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
    )] = False,
    no_color: Annotated[bool, typer.Option(
        "--no-color",
        help="Disable colored output",
    )] = False,
    db: Annotated[Optional[Path], typer.Option(
        "--db",
        envvar=DB_ENV_VAR,
        help="Path to the database file",
    )] = None,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
):
    """Fast snippet and note manager."""
    global _json_output, _color, _db_override
    if verbose:
        enable_debug_mode()
    _json_output = output_json
    _db_override = db
    _color = False if no_color or not _get_config().color else None
    if ctx.invoked_subcommand in _MUTATING_COMMANDS:
        _attach_ops_log(ctx, _get_db_path())


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command()
def add(
    fields: Annotated[Optional[list[str]], typer.Argument(
        metavar="[TITLE] [CONTENT] [TAGS]",
        help="Title, content and comma-separated tags",
    )] = None,
    title: Annotated[Optional[str], typer.Option(
        "--title", "-t", help="Note title"
    )] = None,
    content: Annotated[Optional[str], typer.Option(
        "--content", "-c", help="Note content ('-' reads stdin)"
    )] = None,
    tags: Annotated[Optional[str], typer.Option(
        "--tags", "-g", help="Comma-separated tags"
    )] = None,
):
    """
    Add a new note.

    \b
    Examples:
        cheatnote add "Git status" "git status -s" "git,cli"
        cheatnote add -t "Disk usage" -c "du -sh *" -g shell
        ls -l | cheatnote add "Listing" -
    """
    positional = list(fields or [])
    if title is None and positional:
        title = positional.pop(0)
    if content is None and positional:
        content = positional.pop(0)
    if tags is None and positional:
        tags = positional.pop(0)
    if positional:
        _fail(f"Unexpected arguments: {' '.join(positional)}")

    content = _read_content(content)
    problem = validate_note_fields(title, content, tags)
    if problem:
        _fail(problem)

    store = _open_store()
    try:
        note_id = store.add(title, content, tags)
    except StoreFullError as e:
        _fail(str(e))
    if note_id is None:
        _fail("Failed to add note")

    _save_store(store)
    if _get_json_output():
        _echo(json.dumps({"id": note_id}))
    else:
        _echo(f"Note added successfully with ID: {typer.style(str(note_id), fg=typer.colors.GREEN)}")


@app.command()
def edit(
    fields: Annotated[Optional[list[str]], typer.Argument(
        metavar="[ID] [TITLE] [CONTENT] [TAGS]",
        help="Note ID, then new title, content and tags",
    )] = None,
    id: Annotated[Optional[str], typer.Option(
        "--id", "-i", help="Note ID"
    )] = None,
    title: Annotated[Optional[str], typer.Option(
        "--title", "-t", help="New title"
    )] = None,
    content: Annotated[Optional[str], typer.Option(
        "--content", "-c", help="New content ('-' reads stdin)"
    )] = None,
    tags: Annotated[Optional[str], typer.Option(
        "--tags", "-g", help="New tags (empty string clears them)"
    )] = None,
):
    """
    Edit an existing note.

    Empty title or content leaves the field unchanged; empty tags clear
    the tags.

    \b
    Examples:
        cheatnote edit 5 "New Title" "New Content"
        cheatnote edit 5 "" "Only the content changes"
        cheatnote edit -i 5 -g ""
    """
    positional = list(fields or [])
    if id is None and positional:
        id = positional.pop(0)
    if title is None and positional:
        title = positional.pop(0)
    if content is None and positional:
        content = positional.pop(0)
    if tags is None and positional:
        tags = positional.pop(0)
    if positional:
        _fail(f"Unexpected arguments: {' '.join(positional)}")

    if id is None:
        _fail("Note ID is required for edit command")
    note_id = _parse_id(id)
    content = _read_content(content)
    # Blank title or content means "leave unchanged"
    if title is not None and not title.strip():
        title = None
    if content is not None and not content.strip():
        content = None
    if title is None and content is None and tags is None:
        _fail("At least one field (title, content, or tags) must be provided for edit")

    if title and not text_fits(title, MAX_TITLE_LEN):
        _fail("Title too long")
    if content and not text_fits(content, MAX_CONTENT_LEN):
        _fail("Content too long")
    if tags is not None and not text_fits(tags, MAX_TAGS_LEN):
        _fail("Tags too long")

    store = _open_store()
    if not store.edit(note_id, title, content, tags):
        _fail("Note not found")

    _save_store(store)
    _success("Note updated successfully")


@app.command()
def delete(
    note_id: Annotated[Optional[str], typer.Argument(
        metavar="[ID]", help="ID of the note to delete"
    )] = None,
    id: Annotated[Optional[str], typer.Option(
        "--id", "-i", help="Note ID to delete"
    )] = None,
):
    """
    Delete a note.

    The last note moves into the freed position, so listing order is
    only insertion order until the first delete.
    """
    raw = id if id is not None else note_id
    if raw is None:
        _fail("Note ID is required for delete command")
    parsed = _parse_id(raw)

    store = _open_store()
    if not store.delete(parsed):
        _fail("Note not found")

    _save_store(store)
    _success("Note deleted successfully")


@app.command("del", hidden=True)
def del_cmd(
    note_id: Annotated[Optional[str], typer.Argument(metavar="[ID]")] = None,
    id: Annotated[Optional[str], typer.Option("--id", "-i")] = None,
):
    """Delete a note (alias for 'delete')."""
    delete(note_id=note_id, id=id)


@app.command("list")
def list_notes(
    pattern: Annotated[Optional[str], typer.Argument(
        metavar="[SEARCH_PATTERN]", help="Search in title, content, and tags"
    )] = None,
    search: Annotated[Optional[str], typer.Option(
        "--search", "-s", help="Search in title, content, and tags"
    )] = None,
    tags: Annotated[Optional[str], typer.Option(
        "--tags", "-g", help="Filter by tags (all must be present)"
    )] = None,
    regex: Annotated[bool, typer.Option(
        "--regex", "-r", help="Use regex for search"
    )] = False,
    case_insensitive: Annotated[bool, typer.Option(
        "--case-insensitive", "-i", help="Case-insensitive search"
    )] = False,
    exact: Annotated[bool, typer.Option(
        "--exact", "-e", help="Exact match search"
    )] = False,
    word_boundary: Annotated[bool, typer.Option(
        "--word-boundary", "-w", help="Match whole words only (regex mode)"
    )] = False,
    multiline: Annotated[bool, typer.Option(
        "--multiline", "-m", help="Multiline regex mode"
    )] = False,
    compact: Annotated[Optional[bool], typer.Option(
        "--compact/--full", "-c", help="Compact output format"
    )] = None,
    no_ids: Annotated[bool, typer.Option(
        "--no-ids", "-n", help="Hide note IDs"
    )] = False,
):
    """
    List and search notes.

    \b
    Examples:
        cheatnote list                       # Everything
        cheatnote list git                   # Substring in title/content/tags
        cheatnote list -s GIT -i             # Case-insensitive
        cheatnote list -s "^git" -r -m       # Regex, ^ at line starts
        cheatnote list -s cat -r -w          # Whole word
        cheatnote list -g git,cli            # Notes tagged git AND cli
    """
    query = SearchQuery(
        pattern=search if search is not None else pattern,
        tags=tags,
        case_insensitive=case_insensitive,
        regex_mode=regex,
        exact_match=exact,
        word_boundary=word_boundary,
        multiline_mode=multiline,
    )
    store = _open_store()
    results = filter_notes(store, query)

    if _get_json_output():
        _echo(json.dumps([n.to_dict() for n in results], indent=2, ensure_ascii=False))
        return

    if compact is None:
        compact = _get_config().compact
    render = format_note_compact if compact else format_note_full
    for note in results:
        _echo(render(note, show_id=not no_ids))

    if not results:
        _info("No notes found matching the criteria")
    else:
        plural = "" if len(results) == 1 else "s"
        _echo(typer.style(f"Found {len(results)} note{plural}", fg=typer.colors.GREEN))


@app.command("export")
def export_cmd(
    filename: Annotated[Optional[Path], typer.Argument(
        metavar="[FILENAME]", help="Output filename"
    )] = None,
    output: Annotated[Optional[Path], typer.Option(
        "--output", "-o", help="Output filename"
    )] = None,
):
    """Export notes to a CSV file."""
    target = output or filename
    if target is None:
        target = Path(DEFAULT_EXPORT_FILENAME)
        _info(f"No filename specified, using default: {DEFAULT_EXPORT_FILENAME}")

    store = _open_store()
    try:
        written = export_csv(store, target)
    except OSError as e:
        _fail(f"Failed to write export file: {e}")

    if _get_json_output():
        _echo(json.dumps({"exported": written, "path": str(target)}))
    else:
        _echo(f"Exported {written} notes to {typer.style(str(target), fg=typer.colors.CYAN)} in CSV format")


@app.command("import")
def import_cmd(
    filename: Annotated[Optional[Path], typer.Argument(
        metavar="[FILENAME]", help="Input filename"
    )] = None,
    input: Annotated[Optional[Path], typer.Option(
        "--input", "-i", help="Input filename"
    )] = None,
    merge: Annotated[bool, typer.Option(
        "--merge", "-m", help="Merge with existing notes (default: replace)"
    )] = False,
):
    """
    Import notes from a CSV file.

    Imported notes get fresh IDs. Without --merge the current notes are
    replaced.
    """
    source = input or filename
    if source is None:
        _fail("Input filename is required for import command")

    store = _open_store()
    try:
        result = import_csv(store, source, merge=merge)
    except StoreFullError as e:
        _fail(str(e))
    except OSError as e:
        _fail(f"Failed to open import file for reading: {e}")

    _save_store(store)
    if _get_json_output():
        _echo(json.dumps({"imported": result.imported, "errors": result.errors}))
        return
    message = (
        f"Successfully imported {typer.style(str(result.imported), fg=typer.colors.GREEN)} "
        f"notes from {typer.style(str(source), fg=typer.colors.CYAN)}"
    )
    if result.errors:
        message += f" ({typer.style(str(result.errors), fg=typer.colors.YELLOW)} errors)"
    _echo(message)


def compute_stats(store: NoteStore) -> dict:
    """Summary numbers for the stats command."""
    notes = store.notes()
    total_chars = sum(len(n.content) for n in notes)
    total_lines = sum(n.content.count("\n") + 1 for n in notes if n.content)
    return {
        "total_notes": len(notes),
        "total_characters": total_chars,
        "total_lines": total_lines,
        "avg_chars_per_note": round(total_chars / len(notes), 1) if notes else 0.0,
        "oldest": min((n.created_at for n in notes), default=None),
        "newest": max((n.created_at for n in notes), default=None),
        "database_bytes": snapshot_size(len(notes)),
    }


@app.command()
def stats():
    """Show database statistics."""
    store = _open_store()
    data = compute_stats(store)

    if _get_json_output():
        _echo(json.dumps(data, indent=2))
        return
    if not data["total_notes"]:
        _info("No notes in database")
        return

    avg = f"{data['avg_chars_per_note']:.1f}"
    size_kb = f"{data['database_bytes'] / 1024:.2f} KB"
    _echo(typer.style("CheatNote Statistics", fg=typer.colors.CYAN, bold=True))
    _echo(typer.style("━" * 24, fg=typer.colors.BLUE))
    _echo(f"Total Notes:      {typer.style(str(data['total_notes']), fg=typer.colors.GREEN)}")
    _echo(f"Total Characters: {typer.style(str(data['total_characters']), fg=typer.colors.YELLOW)}")
    _echo(f"Total Lines:      {typer.style(str(data['total_lines']), fg=typer.colors.YELLOW)}")
    _echo(f"Avg Chars/Note:   {typer.style(avg, fg=typer.colors.MAGENTA)}")
    _echo(f"Oldest Note:      {typer.style(format_timestamp(data['oldest']), dim=True)}")
    _echo(f"Newest Note:      {typer.style(format_timestamp(data['newest']), dim=True)}")
    _echo(f"Database Size:    {typer.style(size_kb, fg=typer.colors.CYAN)}")


@app.command()
def config(
    init: Annotated[bool, typer.Option(
        "--init", help="Write the configuration file with current values"
    )] = False,
):
    """Show configuration and file locations."""
    config_dir = get_config_dir()
    if init:
        try:
            cfg = load_or_create_config(config_dir)
        except (OSError, ValueError) as e:
            _fail(str(e))
    else:
        cfg = _get_config()

    data = {
        "database": str(_get_db_path()),
        "config_file": str(cfg.config_path),
        "config_exists": cfg.exists(),
        "color": cfg.color,
        "compact": cfg.compact,
        "initial_capacity": cfg.initial_capacity,
    }
    if _get_json_output():
        _echo(json.dumps(data, indent=2))
        return
    for key, value in data.items():
        _echo(f"{key}: {value}")


@app.command()
def version():
    """Show version information."""
    _echo(f"CheatNote v{__version__}")
    _echo("Fast snippet and note manager")
    _echo("Database: binary snapshot, atomic writes")


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="cheatnote CLI", db_path=_get_db_path())
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()

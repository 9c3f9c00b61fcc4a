"""
Command line interface.

Usage:
    mdnotes check notes/            # integrity checks, exit 1 on errors
    mdnotes list notes/             # topics and notes
    mdnotes index notes/            # write notes/index.md
    mdnotes chunks notes/ --json    # documents for retrieval, as JSON lines
    mdnotes init-config             # write mdnotes.toml with defaults
"""

import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from mdnotes import __version__
from mdnotes.config.config import (
    DEFAULT_CONFIG_FILE,
    Settings,
    create_default_config_file,
    load_settings,
)
from mdnotes.corpus.checks import check_corpus
from mdnotes.corpus.corpus import Corpus, load_corpus
from mdnotes.corpus.index import save_index
from mdnotes.corpus.loader import NotesLoader
from mdnotes.utils.logging import ConsoleLogger, LoggerBase, set_log_level

console = Console()

ROOT_ARGUMENT = click.argument(
    "root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)


def _read_settings(config_file: Path | None) -> Settings:
    try:
        if config_file is not None:
            return load_settings(config_file)
        return Settings()
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e)) from e


def _load(ctx: click.Context, root: Path) -> Corpus:
    settings: Settings = ctx.obj['settings']
    logger: LoggerBase = ctx.obj['logger']
    return load_corpus(root, settings.corpus, logger)


@click.group()
@click.version_option(version=__version__, prog_name="mdnotes")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Configuration file (default: {DEFAULT_CONFIG_FILE} if present)",
)
@click.option("-v", "--verbose", is_flag=True, help="Show progress messages")
@click.pass_context
def cli(ctx: click.Context, config_file: Path | None, verbose: bool):
    """Check, index and load a corpus of markdown study notes."""
    logger = ConsoleLogger("mdnotes")
    set_log_level(logger, verbose)
    ctx.ensure_object(dict)
    ctx.obj['logger'] = logger
    if ctx.invoked_subcommand != "init-config":
        ctx.obj['settings'] = _read_settings(config_file)


@cli.command()
@ROOT_ARGUMENT
@click.option(
    "--external/--no-external",
    default=None,
    help="Probe external http(s) links",
)
@click.option("--orphans/--no-orphans", default=None, help="Report unused assets")
@click.option("--strict", is_flag=True, help="Fail on warnings too")
@click.option("--json", "as_json", is_flag=True, help="Output the report as JSON")
@click.pass_context
def check(
    ctx: click.Context,
    root: Path,
    external: bool | None,
    orphans: bool | None,
    strict: bool,
    as_json: bool,
):
    """Check images, links and anchors of the notes in ROOT."""
    settings: Settings = ctx.obj['settings']
    overrides = {
        'check_external': external,
        'report_orphans': orphans,
        'strict': True if strict else None,
    }
    check_settings = settings.checks.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )

    corpus = _load(ctx, root)
    report = check_corpus(corpus, check_settings, logger=ctx.obj['logger'])

    if as_json:
        click.echo(report.model_dump_json(indent=2))
    elif report.issues:
        table = Table(title=f"Issues in {root}")
        table.add_column("Location", overflow="fold")
        table.add_column("Severity")
        table.add_column("Code")
        table.add_column("Message", overflow="fold")
        for issue in report.issues:
            location = (
                f"{issue.path}:{issue.line}" if issue.line else issue.path
            )
            style = "red" if issue.severity == 'error' else "yellow"
            table.add_row(
                location,
                f"[{style}]{issue.severity}[/{style}]",
                issue.code,
                issue.message,
            )
        console.print(table)
    if not as_json:
        console.print(report.summary(), highlight=False)

    if not report.ok(check_settings.strict):
        sys.exit(1)


@cli.command(name="list")
@ROOT_ARGUMENT
@click.pass_context
def list_notes(ctx: click.Context, root: Path):
    """List the topics and notes in ROOT, in reading order."""
    corpus = _load(ctx, root)
    table = Table(title=f"Notes in {root}")
    table.add_column("Day", justify="right")
    table.add_column("Topic")
    table.add_column("Note", overflow="fold")
    table.add_column("Title", overflow="fold")
    table.add_column("Headings", justify="right")
    table.add_column("Links", justify="right")
    for topic in corpus.topics():
        for note in corpus.notes_in_topic(topic):
            table.add_row(
                "" if note.day is None else str(note.day),
                topic or "/",
                note.relpath,
                note.title,
                str(len(note.get_headings())),
                str(len(note.references)),
            )
    console.print(table)
    console.print(
        f"{len(corpus.notes)} notes, {len(corpus.assets)} assets",
        highlight=False,
    )


@cli.command()
@ROOT_ARGUMENT
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Index file (default: index.md in ROOT)",
)
@click.option("--depth", type=click.IntRange(0, 6), default=None, help="Heading depth")
@click.option("--title", default=None, help="Title of the index")
@click.pass_context
def index(
    ctx: click.Context,
    root: Path,
    output: Path | None,
    depth: int | None,
    title: str | None,
):
    """Write an index of the notes in ROOT."""
    settings: Settings = ctx.obj['settings']
    index_settings = settings.index
    if depth is not None:
        index_settings = index_settings.model_copy(update={'toc_depth': depth})

    corpus = _load(ctx, root)
    path = save_index(
        corpus, index_settings, output, title, logger=ctx.obj['logger']
    )
    if path is None:
        raise click.ClickException("The index could not be written")
    click.echo(str(path))


@cli.command()
@ROOT_ARGUMENT
@click.option("--chunk-size", type=click.IntRange(min=0), default=None)
@click.option("--chunk-overlap", type=click.IntRange(min=0), default=None)
@click.option("--json", "as_json", is_flag=True, help="Print documents as JSON lines")
@click.pass_context
def chunks(
    ctx: click.Context,
    root: Path,
    chunk_size: int | None,
    chunk_overlap: int | None,
    as_json: bool,
):
    """Split the notes in ROOT into documents for retrieval."""
    settings: Settings = ctx.obj['settings']
    overrides = {'chunk_size': chunk_size, 'chunk_overlap': chunk_overlap}
    try:
        loader_settings = settings.loader.model_validate(
            settings.loader.model_dump()
            | {k: v for k, v in overrides.items() if v is not None}
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    corpus = _load(ctx, root)
    documents = NotesLoader(corpus, loader_settings).load()
    if as_json:
        for doc in documents:
            click.echo(
                json.dumps(
                    {'page_content': doc.page_content, 'metadata': doc.metadata},
                    ensure_ascii=False,
                )
            )
    else:
        console.print(
            f"{len(documents)} documents from {len(corpus.notes)} notes",
            highlight=False,
        )


@cli.command(name="init-config")
@click.argument(
    "path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_FILE,
)
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init_config(path: Path, force: bool):
    """Write a configuration file with the default settings."""
    if path.exists() and not force:
        raise click.ClickException(
            f"{path} exists, use --force to overwrite it"
        )
    click.echo(str(create_default_config_file(path)))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()

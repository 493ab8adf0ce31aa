import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import click
import typer
from typer.core import TyperGroup

from ...core.config import BkpConfig, ConfigError, load_build_info, load_config
from ...core.errors import BackupError
from ...core.filesystem import backup
from ...core.logging_utils import log_event, setup_logger

logger = logging.getLogger("bkp.cli")

DEFAULT_COMMAND = "backup"
# Root options that consume the following argument.
_VALUE_OPTIONS = {"--log-file"}


class _BackupGroup(TyperGroup):
    """Route ``bkp SOURCE DESTINATION`` to the ``backup`` command.

    The first positional argument is treated as a subcommand only when it
    names one; anything else is handed to ``backup``.
    """

    def parse_args(self, ctx: click.Context, args: List[str]) -> List[str]:
        args = list(args)
        idx = 0
        while idx < len(args):
            arg = args[idx]
            if arg == "--":
                args.insert(idx, DEFAULT_COMMAND)
                break
            if arg.startswith("-"):
                idx += 2 if arg in _VALUE_OPTIONS else 1
                continue
            if arg not in self.commands:
                args.insert(idx, DEFAULT_COMMAND)
            break
        return super().parse_args(ctx, args)


app = typer.Typer(
    cls=_BackupGroup,
    add_completion=False,
    invoke_without_command=True,
    help=(
        "bkp is a simple command-line tool to back up files and directories.\n\n"
        "Run `bkp SOURCE DESTINATION` to copy a file or a whole directory tree. "
        "The destination may not be the source itself or lie inside it."
    ),
)


def _raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(load_build_info().describe())
    raise typer.Exit(code=0)


def _require_config(ctx: typer.Context) -> BkpConfig:
    config = ctx.find_object(BkpConfig)
    if config is None:
        try:
            config = load_config()
        except ConfigError as exc:
            _raise_exit(str(exc), cause=exc)
    return config


@app.callback()
def _root(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log each step of the backup to stderr."
    ),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Also write a rotating log to this file."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    overrides: dict = {"log": {}}
    if verbose:
        overrides["log"]["level"] = "INFO"
    if log_file is not None:
        overrides["log"]["path"] = str(log_file)
    try:
        config = load_config(overrides=overrides)
    except ConfigError as exc:
        _raise_exit(str(exc), cause=exc)
    setup_logger("bkp", config.log)
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


@app.command(DEFAULT_COMMAND)
def backup_command(
    ctx: typer.Context,
    source: Optional[str] = typer.Argument(
        None, metavar="SOURCE", help="File or directory to back up."
    ),
    destination: Optional[str] = typer.Argument(
        None, metavar="DESTINATION", help="Where the copy is written."
    ),
) -> None:
    """Copy SOURCE to DESTINATION (the default command)."""
    if source is None or destination is None:
        help_ctx = ctx.parent if ctx.parent is not None else ctx
        typer.echo(help_ctx.get_help())
        raise typer.Exit(code=0)

    config = _require_config(ctx)
    try:
        summary = backup(source, destination, chunk_size=config.chunk_size)
    except BackupError as exc:
        log_event(logger, logging.DEBUG, "cli.backup.failed", exc=exc, kind=exc.kind.value)
        _raise_exit(f"Error: {exc}", cause=exc)

    message = (
        f"Backed up {source} -> {summary.destination} "
        f"({summary.files_copied} files, {summary.directories_created} directories)"
    )
    if summary.skipped:
        message += f", skipped {len(summary.skipped)} entries"
    typer.echo(message)


@app.command(
    "version",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def version_command(ctx: typer.Context) -> None:
    """Show the current version of bkp."""
    typer.echo(_require_config(ctx).build.describe())


def main() -> None:
    """Entrypoint for CLI execution."""
    app(prog_name="bkp")

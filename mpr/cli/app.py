from __future__ import annotations

import os
from pathlib import Path

import typer

from mpr import __version__
from mpr.cli.commands.release_cmd import check, publish, publish_track, release
from mpr.cli.commands.tracks import latest, tracks
from mpr.cli.context import CONFIG_ENV, ROOT_ENV
from mpr.core.errors import ErrorCode

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


app.command()(tracks)
app.command()(latest)
app.command()(check)
app.command()(publish)
app.command()(release)
app.command("publish-track")(publish_track)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=_show_version,
        is_eager=True,
    ),
    root: Path | None = typer.Option(
        None,
        "--root",
        help="Pack repository root (defaults to the current directory)",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Path to release.toml (defaults to <root>/release.toml)",
    ),
) -> None:
    if root is not None:
        try:
            resolved = root.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --root: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))
        if not resolved.is_dir():
            typer.echo(f"error: --root '{resolved}' is not a directory", err=True)
            raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))
        os.environ[ROOT_ENV] = str(resolved)

    if config is not None:
        os.environ[CONFIG_ENV] = str(config.expanduser().resolve())


def main() -> None:
    app()

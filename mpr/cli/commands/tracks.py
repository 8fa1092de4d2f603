from __future__ import annotations

import typer

from mpr.cli.commands._helpers import exit_on_error
from mpr.cli.context import build_context
from mpr.core.errors import ErrorCode
from mpr.net.http import RealHttpClient, RetryPolicy
from mpr.output.console import Style
from mpr.release.discovery import list_valid_tracks


def tracks() -> None:
    """List the game versions the pack is released for."""
    ctx = build_context()
    config = ctx.config

    result = list_valid_tracks(
        RealHttpClient(timeout=config.retry.timeout),
        config.catalog.url,
        RetryPolicy.from_config(config.retry),
        console=ctx.console,
    )
    for track in exit_on_error(result, ctx, ErrorCode.NETWORK_ERROR):
        latest = exit_on_error(ctx.ledger.latest_tag(track), ctx)
        if latest is None:
            ctx.console.print(f"{track}: not released", Style.DIM)
        else:
            ctx.console.print(f"{track}: {latest.release}")


def latest(track: str = typer.Argument(..., help="Track, e.g. 1.21.10")) -> None:
    """Show the latest release tag of a track and the commit it is bound to."""
    ctx = build_context()

    tag = exit_on_error(ctx.ledger.latest_tag(track), ctx)
    if tag is None:
        ctx.console.warning(f"{track} has never been released")
        raise typer.Exit(code=int(ErrorCode.TRACK_ERROR))

    commit = exit_on_error(ctx.ledger.commit_of(tag), ctx)
    ctx.console.print(f"{tag} {commit[:12]}")

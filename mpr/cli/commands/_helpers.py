"""Shared helpers for CLI commands."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from mpr.core.errors import ErrorCode
from mpr.core.result import Err, Result
from mpr.net.http import RealHttpClient
from mpr.output.console import Style
from mpr.release.errors import ReleaseError
from mpr.release.model import RunSummary
from mpr.release.orchestrator import ReleaseOrchestrator
from mpr.services.installer import PackwizBuilder, PackwizInstaller
from mpr.services.upload import UploadPublisher

if TYPE_CHECKING:
    from mpr.cli.context import CLIContext

T = TypeVar("T")


def exit_on_error(
    result: Result[T, ReleaseError],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.TRACK_ERROR,
) -> T:
    """Return the value of an Ok result, or print the error and exit."""
    if isinstance(result, Err):
        error = result.error
        ctx.console.error(error.message)
        if error.hint:
            ctx.console.print(f"hint: {error.hint}", Style.DIM)
        raise typer.Exit(code=int(error_code))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)


def build_orchestrator(ctx: CLIContext, *, push: bool = True) -> ReleaseOrchestrator:
    config = ctx.config
    if not push:
        config = replace(config, ledger=replace(config.ledger, push=False))

    http = RealHttpClient(timeout=config.retry.timeout)
    installer = PackwizInstaller(root=ctx.root, console=ctx.console)
    return ReleaseOrchestrator(
        config=config,
        ledger=ctx.ledger,
        builder=PackwizBuilder(config=config, installer=installer, console=ctx.console),
        publisher=UploadPublisher(config=config, http=http, token=ctx.token, console=ctx.console),
        console=ctx.console,
        http=http,
    )


def finish(orchestrator: ReleaseOrchestrator, summary: RunSummary) -> None:
    """Print the run summary and exit non-zero when anything failed."""
    orchestrator.print_summary(summary)
    code = summary.exit_code
    if not code.is_success:
        exit_with_code(int(code))

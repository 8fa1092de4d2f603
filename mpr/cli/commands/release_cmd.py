from __future__ import annotations

import typer

from mpr.cli.commands._helpers import build_orchestrator, finish
from mpr.cli.context import build_context


def check(
    no_push: bool = typer.Option(False, "--no-push", help="Create tags locally only"),
) -> None:
    """Phase 1: build every track, detect changes and create release tags."""
    ctx = build_context()
    orchestrator = build_orchestrator(ctx, push=not no_push)
    finish(orchestrator, orchestrator.run("check"))


def publish() -> None:
    """Phase 2: upload every track whose latest tag carries changes."""
    ctx = build_context()
    orchestrator = build_orchestrator(ctx)
    finish(orchestrator, orchestrator.run("publish"))


def release(
    no_push: bool = typer.Option(False, "--no-push", help="Create tags locally only"),
) -> None:
    """Run phase 1 then phase 2."""
    ctx = build_context()
    orchestrator = build_orchestrator(ctx, push=not no_push)
    finish(orchestrator, orchestrator.run("check-and-publish"))


def publish_track(track: str = typer.Argument(..., help="Track, e.g. 1.21.10")) -> None:
    """Upload the latest tag of one track, even if it matches the previous one."""
    ctx = build_context()
    orchestrator = build_orchestrator(ctx)
    finish(orchestrator, orchestrator.publish_track(track))

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from mpr.core.config import CONFIG_FILENAME, ReleaseConfig, load_config
from mpr.core.errors import ErrorCode
from mpr.core.result import Err
from mpr.git.ledger import Ledger
from mpr.output.console import ConsoleProtocol, RichConsole, Style

ROOT_ENV = "MPR_ROOT"
CONFIG_ENV = "MPR_CONFIG"


@dataclass(frozen=True, slots=True)
class CLIContext:
    root: Path
    config: ReleaseConfig
    ledger: Ledger
    console: ConsoleProtocol
    # Upload token, read once from the environment variable named in config.
    token: str | None


def resolve_root() -> Path:
    raw = os.environ.get(ROOT_ENV)
    return Path(raw).expanduser().resolve() if raw else Path.cwd()


def build_context() -> CLIContext:
    console = RichConsole()
    root = resolve_root()
    raw_config = os.environ.get(CONFIG_ENV)
    config_path = Path(raw_config).expanduser() if raw_config else root / CONFIG_FILENAME

    config_result = load_config(config_path)
    if isinstance(config_result, Err):
        console.error(config_result.error.message)
        console.print(f"hint: create {CONFIG_FILENAME} in the pack root or pass --config", Style.DIM)
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))
    config = config_result.value

    ledger = Ledger(root, remote=config.ledger.remote)
    if not ledger.exists():
        console.error(f"not a git repository: {root}")
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))

    return CLIContext(
        root=root,
        config=config,
        ledger=ledger,
        console=console,
        token=os.environ.get(config.upload.token_env) or None,
    )

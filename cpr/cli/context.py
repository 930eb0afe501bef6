from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from cpr.core.config import CONFIG_FILENAME, Config, load_config_or_default
from cpr.core.errors import ErrorCode
from cpr.core.result import Err
from cpr.output.console import ConsoleProtocol, RichConsole

WORKSPACE_ENV = "CPR_WORKSPACE_ROOT"


@dataclass(frozen=True, slots=True)
class CLIContext:
    workspace_root: Path
    config: Config
    console: ConsoleProtocol


def workspace_root() -> Path:
    env = os.environ.get(WORKSPACE_ENV)
    if env:
        return Path(env).expanduser().resolve()
    return Path.cwd().resolve()


def build_context() -> CLIContext:
    root = workspace_root()
    config_result = load_config_or_default(root / CONFIG_FILENAME)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(
        workspace_root=root,
        config=config_result.value,
        console=RichConsole(),
    )

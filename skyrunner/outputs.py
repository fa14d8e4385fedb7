"""Lifecycle outputs and failure reporting.

A successful start publishes label, instance id and region: appended to
the ``$GITHUB_OUTPUT`` file inside GitHub Actions, and always echoed to
stdout so other callers can capture them.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from skyrunner.types import WorkerOutputs

log = logger.bind(component="outputs")


def _in_actions(env: Mapping[str, str]) -> bool:
    return env.get("GITHUB_ACTIONS", "").lower() == "true"


def format_outputs(values: Mapping[str, str]) -> str:
    """Render ``name=value`` lines, the format $GITHUB_OUTPUT expects."""
    lines = []
    for name, value in values.items():
        if "\n" in value:
            raise ValueError(f"output {name} must be a single line")
        lines.append(f"{name}={value}")
    return "\n".join(lines) + "\n"


def write_outputs(
    outputs: WorkerOutputs,
    *,
    env: Mapping[str, str] | None = None,
    console: Console | None = None,
) -> None:
    env = os.environ if env is None else env
    values = outputs.as_dict()

    if path := env.get("GITHUB_OUTPUT"):
        with Path(path).open("a", encoding="utf-8") as f:
            f.write(format_outputs(values))
        log.debug("Outputs written to {path}", path=path)

    console = console or Console()
    table = Table(show_header=False, box=None)
    for name, value in values.items():
        table.add_row(name, value)
    console.print(table)


def report_failure(
    error: BaseException,
    *,
    env: Mapping[str, str] | None = None,
    console: Console | None = None,
) -> None:
    """Show a failure to a human, and annotate the workflow run when in Actions."""
    env = os.environ if env is None else env
    console = console or Console(stderr=True)
    message = str(error) or type(error).__name__

    if _in_actions(env):
        # Workflow commands are read from raw stdout; keep them unstyled.
        flat = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        print(f"::error::{flat}", flush=True)
    console.print(f"[bold red]error:[/bold red] {escape(message)}", highlight=False)

"""Declarative bootstrap script DSL.

Generates the EC2 user data that turns a fresh instance into a
GitHub Actions runner.

Example:
    >>> from skyrunner.bootstrap import bootstrap, cd, env_export
    >>>
    >>> script = bootstrap(
    ...     cd("/opt/actions-runner"),
    ...     env_export(RUNNER_ALLOW_RUNASROOT="1"),
    ...     "./run.sh",
    ... )
"""

from __future__ import annotations

from .compose import HEADER, Op, bootstrap, resolve
from .ops import cd, chown, env_export, file, mkdir_cd, run_as, source
from .runner import (
    configure_runner,
    download_runner,
    runner_name,
    runner_user_data,
    start_runner,
    user_data_builder,
)

__all__ = [
    "HEADER",
    "Op",
    "bootstrap",
    "cd",
    "chown",
    "configure_runner",
    "download_runner",
    "env_export",
    "file",
    "mkdir_cd",
    "resolve",
    "run_as",
    "runner_name",
    "runner_user_data",
    "source",
    "start_runner",
    "user_data_builder",
]

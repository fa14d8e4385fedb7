"""GitHub Actions runner bootstrap.

Builds the EC2 user data that installs (or reuses) the runner agent,
registers it with the one-time token under the worker label, and starts it.
"""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING

from ..constants import (
    DEFAULT_RUNNER_PREFIX,
    PRE_RUNNER_SCRIPT,
    RUNNER_DIR,
    RUNNER_RELEASES_URL,
)
from .compose import Op, bootstrap
from .ops import cd, chown, env_export, file, mkdir_cd, run_as, source

if TYPE_CHECKING:
    from ..config import GitHubConfig, RunnerSpec
    from ..types import RegistrationToken, UserDataBuilder


def runner_name(spec: RunnerSpec, label: str) -> str:
    return spec.name or f"{DEFAULT_RUNNER_PREFIX}-{label}"


def download_runner(version: str) -> Op:
    """Download and unpack the runner release matching the machine arch."""

    def generate() -> str:
        tarball = f"actions-runner-linux-${{RUNNER_ARCH}}-{version}.tar.gz"
        return "\n".join([
            'case $(uname -m) in aarch64) ARCH="arm64" ;; amd64|x86_64) ARCH="x64" ;; esac '
            "&& export RUNNER_ARCH=${ARCH}",
            f"curl -O -L {RUNNER_RELEASES_URL}/v{version}/{tarball}",
            f"tar xzf ./{tarball}",
        ])

    return generate


def configure_runner(
    github: GitHubConfig,
    token: RegistrationToken,
    label: str,
    name: str,
) -> Op:
    """Register the runner with the repository.

    Example:
        >>> configure_runner(gh, RegistrationToken("T1"), "abc", "skyrunner-abc")()
        './config.sh --url https://github.com/acme/widgets --token T1 --labels abc --name skyrunner-abc --unattended'
    """
    url = f"{github.server_url.rstrip('/')}/{github.owner}/{github.repo}"
    return lambda: (
        f"./config.sh --url {url} --token {shlex.quote(token.value)} "
        f"--labels {shlex.quote(label)} --name {shlex.quote(name)} --unattended"
    )


def start_runner(spec: RunnerSpec) -> Op:
    """Start the agent, as a systemd service or in the foreground."""
    if spec.run_as_service:
        user = f" {shlex.quote(spec.run_as_user)}" if spec.run_as_user else ""
        return [f"./svc.sh install{user}", "./svc.sh start"]
    return run_as(spec.run_as_user, "./run.sh")


def runner_user_data(
    spec: RunnerSpec,
    github: GitHubConfig,
    token: RegistrationToken,
    label: str,
) -> str:
    """Build the complete user data script for one worker.

    With ``spec.home_dir`` set the runner is expected to be pre-installed in
    the AMI; otherwise the pinned release is downloaded first.
    """
    install: Op = (
        cd(spec.home_dir)
        if spec.home_dir
        else [mkdir_cd(RUNNER_DIR), download_runner(spec.version)]
    )

    return bootstrap(
        install,
        file(PRE_RUNNER_SCRIPT, spec.pre_runner_script),
        source(PRE_RUNNER_SCRIPT),
        env_export(RUNNER_ALLOW_RUNASROOT="1"),
        configure_runner(github, token, label, runner_name(spec, label)),
        chown(spec.run_as_user) if spec.run_as_user else None,
        start_runner(spec),
    )


def user_data_builder(spec: RunnerSpec, github: GitHubConfig) -> UserDataBuilder:
    """Bind the static parts so the orchestrator only supplies token and label."""

    def build(token: RegistrationToken, label: str) -> str:
        return runner_user_data(spec, github, token, label)

    return build

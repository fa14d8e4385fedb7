"""Core bootstrap operations.

Each operation is a function returning an Op (string or callable).
"""

from __future__ import annotations

import shlex

from .compose import Op


def cd(path: str) -> Op:
    """Change directory.

    Example:
        >>> cd("/opt/runner")()
        'cd /opt/runner'
    """
    return lambda: f"cd {shlex.quote(path)}"


def mkdir_cd(path: str) -> Op:
    """Create a directory and move into it."""
    return lambda: f"mkdir -p {shlex.quote(path)} && cd {shlex.quote(path)}"


def _heredoc_delimiter(content: str) -> str:
    """First of SKYRUNNER_EOF, SKYRUNNER_EOF_1, ... not used as a line of content."""
    lines = set(content.splitlines())
    delimiter, n = "SKYRUNNER_EOF", 0
    while delimiter in lines:
        n += 1
        delimiter = f"SKYRUNNER_EOF_{n}"
    return delimiter


def file(path: str, content: str, mode: str | None = None) -> Op:
    """Write content to a file using a quoted heredoc (no expansion).

    Example:
        >>> file("pre.sh", "echo hi")()
        "cat > pre.sh << 'SKYRUNNER_EOF'\\necho hi\\nSKYRUNNER_EOF"
    """

    def generate() -> str:
        delimiter = _heredoc_delimiter(content)
        lines = [f"cat > {path} << '{delimiter}'", content, delimiter]
        if mode:
            lines.append(f"chmod {mode} {path}")
        return "\n".join(lines)

    return generate


def source(path: str) -> Op:
    return lambda: f"source {path}"


def env_export(**variables: str) -> Op:
    """Export environment variables.

    Example:
        >>> env_export(RUNNER_ALLOW_RUNASROOT="1")()
        'export RUNNER_ALLOW_RUNASROOT="1"'
    """
    if not variables:
        return lambda: "# No environment variables"

    def generate() -> str:
        return "\n".join(f'export {k}="{v}"' for k, v in variables.items())

    return generate


def chown(owner: str, path: str = ".") -> Op:
    return lambda: f"chown -R {shlex.quote(owner)} {path}"


def run_as(user: str | None, command: str) -> Op:
    """Run a command, switching user when one is given.

    Example:
        >>> run_as("ubuntu", "./run.sh")()
        'su ubuntu -c ./run.sh'
    """
    if not user:
        return lambda: command
    return lambda: f"su {shlex.quote(user)} -c {shlex.quote(command)}"

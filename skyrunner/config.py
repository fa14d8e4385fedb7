"""Process-wide configuration.

Loads ~/.skyrunner/defaults.toml (global) and skyrunner.toml (project),
merges them, layers environment variables and CLI overrides on top, and
builds one immutable RunnerConfig that is passed explicitly to the
orchestrator and the providers.

Example skyrunner.toml:

    [github]
    owner = "acme"
    repo = "widgets"

    [ec2]
    image_id = "ami-0123456789abcdef0"
    instance_type = "c6i.large"
    subnet_id = "subnet-0abc"
    security_group_id = "sg-0abc"

    [ec2.tags]
    team = "ci"

Environment variables use the ``SKYRUNNER_<SECTION>_<FIELD>`` form
(``SKYRUNNER_EC2_IMAGE_ID``, ``SKYRUNNER_TIMING_QUIET_PERIOD``), plus
``SKYRUNNER_MODE``, ``SKYRUNNER_LABEL`` and ``SKYRUNNER_INSTANCE_ID``.
The usual GitHub Actions and AWS variables are honoured as fallbacks.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from skyrunner.constants import (
    GITHUB_API_URL,
    GITHUB_SERVER_URL,
    INSTANCE_RUNNING_INTERVAL,
    INSTANCE_RUNNING_TIMEOUT,
    REGISTRATION_INTERVAL,
    REGISTRATION_QUIET_PERIOD,
    REGISTRATION_TIMEOUT,
    REQUEST_TIMEOUT,
    RUNNER_VERSION,
    Mode,
)
from skyrunner.exceptions import ConfigurationError

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".skyrunner" / "defaults.toml"
PROJECT_CONFIG_NAME = "skyrunner.toml"
ENV_PREFIX = "SKYRUNNER_"

SECTIONS = ("github", "ec2", "runner", "timing")
TOP_LEVEL = ("mode", "label", "instance_id")
MARKET_TYPES = (None, "spot")


# =============================================================================
# Config Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class GitHubConfig:
    """Where runners register and how to authenticate.

    Args:
        token: Token allowed to administer self-hosted runners of the repo.
        owner: Repository owner (user or organization).
        repo: Repository name.
        api_url: REST API base, override for GitHub Enterprise Server.
        server_url: Web URL the runner agent registers against; pairs with
            ``api_url`` on GitHub Enterprise Server.
        request_timeout: Per-request timeout in seconds.
    """

    token: str = field(default="", repr=False)
    owner: str = ""
    repo: str = ""
    api_url: str = GITHUB_API_URL
    server_url: str = GITHUB_SERVER_URL
    request_timeout: float = REQUEST_TIMEOUT

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True, slots=True)
class EC2Config:
    """How the worker instance is launched.

    Args:
        image_id: AMI to boot.
        instance_type: EC2 instance type, e.g. ``c6i.large``.
        subnet_id: Subnet to launch into.
        security_group_id: Security group attached to the instance.
        region: AWS region. None defers to the boto3 default chain.
        iam_role_name: Instance profile name attached to the instance.
        market_type: ``"spot"`` for a one-time spot request, None for on-demand.
        tags: Extra tags applied to the instance and its volumes.
    """

    image_id: str = ""
    instance_type: str = ""
    subnet_id: str = ""
    security_group_id: str = ""
    region: str | None = None
    iam_role_name: str | None = None
    market_type: str | None = None
    tags: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RunnerSpec:
    """How the runner agent is installed and started on the instance."""

    home_dir: str | None = None
    pre_runner_script: str = ""
    run_as_user: str | None = None
    run_as_service: bool = False
    name: str | None = None
    version: str = RUNNER_VERSION


@dataclass(frozen=True, slots=True)
class Timing:
    """Readiness wait bounds, in seconds."""

    instance_timeout: float = INSTANCE_RUNNING_TIMEOUT
    instance_interval: float = INSTANCE_RUNNING_INTERVAL
    registration_timeout: float = REGISTRATION_TIMEOUT
    registration_interval: float = REGISTRATION_INTERVAL
    quiet_period: float = REGISTRATION_QUIET_PERIOD


@dataclass(frozen=True, slots=True)
class RunnerConfig:
    """Everything one start or stop needs.

    ``label`` and ``instance_id`` are only read by stop; they are the
    outputs of the start being undone.
    """

    mode: Mode = Mode.START
    github: GitHubConfig = field(default_factory=GitHubConfig)
    ec2: EC2Config = field(default_factory=EC2Config)
    runner: RunnerSpec = field(default_factory=RunnerSpec)
    timing: Timing = field(default_factory=Timing)
    label: str | None = None
    instance_id: str | None = None

    @classmethod
    def from_raw(cls, raw: RawConfig) -> RunnerConfig:
        raw = dict(raw)
        try:
            mode = Mode(raw.pop("mode", Mode.START))
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown mode. Valid: {', '.join(Mode)}"
            ) from e

        sections: dict[str, Any] = {}
        for name, section_cls in (
            ("github", GitHubConfig),
            ("ec2", EC2Config),
            ("runner", RunnerSpec),
            ("timing", Timing),
        ):
            section = raw.pop(name, None) or {}
            try:
                sections[name] = section_cls(**section)
            except TypeError as e:
                raise ConfigurationError(f"Invalid [{name}] section: {e}") from e

        label = raw.pop("label", None)
        instance_id = raw.pop("instance_id", None)
        if raw:
            raise ConfigurationError(f"Unknown config keys: {', '.join(sorted(raw))}")

        return cls(mode=mode, label=label, instance_id=instance_id, **sections)

    def validate(self) -> RunnerConfig:
        """Check that the fields the current mode needs are present.

        Returns self, so it can be chained after ``from_raw``.
        """
        missing: list[str] = []
        if not self.github.token:
            missing.append("github.token")
        if not self.github.owner or not self.github.repo:
            missing.append("github.owner/github.repo")

        match self.mode:
            case Mode.START:
                for name in ("image_id", "instance_type", "subnet_id", "security_group_id"):
                    if not getattr(self.ec2, name):
                        missing.append(f"ec2.{name}")
            case Mode.STOP:
                if not self.label:
                    missing.append("label")
                if not self.instance_id:
                    missing.append("instance_id")

        if missing:
            raise ConfigurationError(
                f"Missing required settings for {self.mode}: {', '.join(missing)}"
            )

        if self.ec2.market_type not in MARKET_TYPES:
            raise ConfigurationError(
                f"Unknown market type '{self.ec2.market_type}'. Valid: spot"
            )
        if self.timing.instance_interval <= 0 or self.timing.registration_interval <= 0:
            raise ConfigurationError("Polling intervals must be positive")
        return self


# =============================================================================
# Loading
# =============================================================================


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def _parse_tags(value: str) -> dict[str, str]:
    """Parse tags given as a JSON object or a JSON list of {Key, Value} pairs."""
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Tags must be JSON: {e}") from e

    match parsed:
        case dict():
            return {str(k): str(v) for k, v in parsed.items()}
        case list():
            try:
                return {str(t["Key"]): str(t["Value"]) for t in parsed}
            except (KeyError, TypeError) as e:
                raise ConfigurationError("Tag list entries need Key and Value") from e
        case _:
            raise ConfigurationError("Tags must be a JSON object or list")


def _coerce(section: str, name: str, value: str) -> Any:
    if section == "timing" or (section == "github" and name == "request_timeout"):
        try:
            return float(value)
        except ValueError as e:
            raise ConfigurationError(f"{section}.{name} must be a number") from e
    if section == "runner" and name == "run_as_service":
        return value.strip().lower() in ("1", "true", "yes", "on")
    if section == "ec2" and name == "tags":
        return _parse_tags(value)
    return value


def _section_fields() -> dict[str, tuple[str, ...]]:
    return {
        "github": tuple(f.name for f in fields(GitHubConfig)),
        "ec2": tuple(f.name for f in fields(EC2Config)),
        "runner": tuple(f.name for f in fields(RunnerSpec)),
        "timing": tuple(f.name for f in fields(Timing)),
    }


def config_from_env(env: Mapping[str, str]) -> RawConfig:
    """Collect config values from environment variables."""
    raw: RawConfig = {}

    repository = env.get("GITHUB_REPOSITORY", "")
    if "/" in repository:
        owner, repo = repository.split("/", 1)
        raw["github"] = {"owner": owner, "repo": repo}
    if env.get("GITHUB_TOKEN"):
        raw.setdefault("github", {})["token"] = env["GITHUB_TOKEN"]
    if env.get("GITHUB_API_URL"):
        raw.setdefault("github", {})["api_url"] = env["GITHUB_API_URL"]
    if env.get("GITHUB_SERVER_URL"):
        raw.setdefault("github", {})["server_url"] = env["GITHUB_SERVER_URL"]
    region = env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION")
    if region:
        raw["ec2"] = {"region": region}

    for key in TOP_LEVEL:
        value = env.get(f"{ENV_PREFIX}{key.upper()}")
        if value:
            raw[key] = value

    for section, names in _section_fields().items():
        for name in names:
            value = env.get(f"{ENV_PREFIX}{section.upper()}_{name.upper()}")
            if value is not None and value != "":
                raw.setdefault(section, {})[name] = _coerce(section, name, value)

    return raw


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: RawConfig | None = None,
) -> RawConfig:
    """Merge every config source, later sources winning.

    Order: global TOML, project TOML (or ``config_path``), environment,
    ``overrides`` (usually CLI flags).
    """
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    if config_path is not None:
        if not config_path.is_file():
            raise ConfigurationError(f"Config file not found: {config_path}")
        project_cfg = _read_toml(config_path)
    else:
        project_cfg = _read_toml((project_dir or Path.cwd()) / PROJECT_CONFIG_NAME)

    merged = _deep_merge(global_cfg, project_cfg)
    merged = _deep_merge(merged, config_from_env(os.environ if env is None else env))
    return _deep_merge(merged, overrides or {})


def resolve_config(**kwargs: Any) -> RunnerConfig:
    """Load, build and validate the configuration in one go."""
    return RunnerConfig.from_raw(load_config(**kwargs)).validate()

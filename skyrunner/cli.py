"""Command line entry point.

    skyrunner start
    skyrunner stop --label 3f9a1c07be --instance-id i-0123456789abcdef0

Configuration comes from skyrunner.toml and the environment (see
``skyrunner.config``); flags override both. Exit status is 0 on success and
1 on any failure, with the reason printed to stderr.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from loguru import logger

from skyrunner.config import RawConfig, RunnerConfig, load_config
from skyrunner.constants import Mode
from skyrunner.exceptions import SkyrunnerError
from skyrunner.logging import LogConfig, setup_logging, teardown_logging
from skyrunner.orchestrator import Orchestrator
from skyrunner.outputs import report_failure, write_outputs
from skyrunner.providers import EC2ComputeProvider, GitHubRegistrationService
from skyrunner.types import InstanceHandle

log = logger.bind(component="cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skyrunner",
        description="Ephemeral EC2 self-hosted runners for GitHub Actions",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to a skyrunner.toml")
    parser.add_argument(
        "--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--log-file", default=None, help="Also write DEBUG logs to this file")

    sub = parser.add_subparsers(dest="mode", required=True)

    start = sub.add_parser(Mode.START, help="Launch an instance and wait for its runner")
    start.add_argument("--image-id", dest="ec2.image_id")
    start.add_argument("--instance-type", dest="ec2.instance_type")
    start.add_argument("--subnet-id", dest="ec2.subnet_id")
    start.add_argument("--security-group-id", dest="ec2.security_group_id")
    start.add_argument("--iam-role-name", dest="ec2.iam_role_name")
    start.add_argument("--market-type", dest="ec2.market_type", choices=["spot"])
    start.add_argument("--runner-name", dest="runner.name")
    start.add_argument("--runner-home-dir", dest="runner.home_dir")
    start.add_argument("--run-as-user", dest="runner.run_as_user")
    start.add_argument(
        "--run-as-service", dest="runner.run_as_service", action="store_true", default=None,
    )
    start.add_argument("--timeout", dest="timing.registration_timeout", type=float)

    stop = sub.add_parser(Mode.STOP, help="Terminate the instance and remove its runner")
    stop.add_argument("--label", dest="label")
    stop.add_argument("--instance-id", dest="instance_id")

    for p in (start, stop):
        p.add_argument("--region", dest="ec2.region")
        p.add_argument("--repository", dest="repository", help="owner/repo")

    return parser


def overrides_from_args(args: argparse.Namespace) -> RawConfig:
    """Turn parsed flags into a raw config fragment, skipping unset ones."""
    raw: RawConfig = {"mode": args.mode}
    for key, value in vars(args).items():
        if value is None or key in ("mode", "config", "log_level", "log_file"):
            continue
        if key == "repository":
            owner, _, repo = value.partition("/")
            raw.setdefault("github", {}).update(owner=owner, repo=repo)
        elif "." in key:
            section, name = key.split(".", 1)
            raw.setdefault(section, {})[name] = value
        else:
            raw[key] = value
    return raw


def build_orchestrator(config: RunnerConfig) -> Orchestrator:
    return Orchestrator(
        config,
        EC2ComputeProvider(config.ec2),
        GitHubRegistrationService(config.github),
    )


def run(config: RunnerConfig, *, env: Mapping[str, str] | None = None) -> None:
    orchestrator = build_orchestrator(config)
    try:
        match config.mode:
            case Mode.START:
                outputs = orchestrator.start()
                write_outputs(outputs, env=env)
            case Mode.STOP:
                assert config.label is not None and config.instance_id is not None
                handle = InstanceHandle(config.instance_id, config.ec2.region or "")
                orchestrator.stop(handle, config.label)
    finally:
        if close := getattr(orchestrator.registry, "close", None):
            close()


def main(argv: Sequence[str] | None = None, *, env: Mapping[str, str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logger.remove()
    handler_ids = setup_logging(LogConfig(level=args.log_level, file=args.log_file))
    try:
        raw = load_config(config_path=args.config, env=env, overrides=overrides_from_args(args))
        config = RunnerConfig.from_raw(raw).validate()
        log.info("Running {mode} for {repo}", mode=config.mode, repo=config.github.repository)
        run(config, env=env)
    except SkyrunnerError as e:
        report_failure(e, env=env)
        return 1
    except Exception as e:
        log.exception("Unexpected failure: {err}", err=e)
        report_failure(e, env=env)
        return 1
    finally:
        teardown_logging(handler_ids)
    return 0


def cli(argv: Sequence[str] | None = None, **kwargs: Any) -> None:
    sys.exit(main(argv, **kwargs))


if __name__ == "__main__":
    cli()

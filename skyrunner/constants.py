"""Centralized constants and enums for skyrunner.

All magic strings, defaults and timeouts are defined here
to keep the providers and the orchestrator consistent.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

# =============================================================================
# AWS Resource Tags
# =============================================================================


class RunnerTag(StrEnum):
    """AWS resource tag keys used by skyrunner."""

    MANAGED = "skyrunner:managed"
    LABEL = "skyrunner:label"
    NAME = "Name"


# =============================================================================
# EC2 Instance States
# =============================================================================


class InstanceState(StrEnum):
    """EC2 instance state names."""

    RUNNING = "running"
    STOPPED = "stopped"
    PENDING = "pending"
    TERMINATED = "terminated"
    STOPPING = "stopping"
    SHUTTING_DOWN = "shutting-down"


DEAD_STATES: Final = (
    InstanceState.STOPPED,
    InstanceState.TERMINATED,
    InstanceState.STOPPING,
    InstanceState.SHUTTING_DOWN,
)


# =============================================================================
# Lifecycle
# =============================================================================


class Mode(StrEnum):
    START = "start"
    STOP = "stop"


class StartPhase(StrEnum):
    """States of the start path, in order."""

    IDLE = "idle"
    TOKEN_ISSUED = "token-issued"
    INSTANCE_REQUESTED = "instance-requested"
    INSTANCE_RUNNING = "instance-running"
    AGENT_REGISTERED = "agent-registered"
    FAILED = "failed"


# =============================================================================
# GitHub
# =============================================================================

GITHUB_API_URL: Final = "https://api.github.com"
GITHUB_SERVER_URL: Final = "https://github.com"
RUNNER_ONLINE: Final = "online"
RUNNERS_PAGE_SIZE: Final = 100

# =============================================================================
# Runner Bootstrap
# =============================================================================

RUNNER_VERSION: Final = "2.325.0"
RUNNER_DIR: Final = "actions-runner"
RUNNER_RELEASES_URL: Final = "https://github.com/actions/runner/releases/download"
USER_DATA_LOG: Final = "/var/log/user-data.log"
PRE_RUNNER_SCRIPT: Final = "pre-runner-script.sh"
DEFAULT_RUNNER_PREFIX: Final = "skyrunner"

# Timeouts (in seconds)
INSTANCE_RUNNING_TIMEOUT: Final = 300
INSTANCE_RUNNING_INTERVAL: Final = 5
REGISTRATION_TIMEOUT: Final = 300
REGISTRATION_INTERVAL: Final = 10
REGISTRATION_QUIET_PERIOD: Final = 30
REQUEST_TIMEOUT: Final = 30

# =============================================================================
# Lifecycle Outputs
# =============================================================================

OUTPUT_LABEL: Final = "label"
OUTPUT_INSTANCE_ID: Final = "ec2-instance-id"
OUTPUT_REGION: Final = "region"

"""skyrunner - ephemeral EC2 self-hosted runners for GitHub Actions.

Example:

    from skyrunner import Orchestrator, resolve_config
    from skyrunner.providers import EC2ComputeProvider, GitHubRegistrationService

    config = resolve_config()
    orchestrator = Orchestrator(
        config,
        EC2ComputeProvider(config.ec2),
        GitHubRegistrationService(config.github),
    )

    outputs = orchestrator.start()
    ...  # run jobs on runs-on: [self-hosted, <outputs.label>]
    orchestrator.stop(outputs.handle, outputs.label)
"""

from skyrunner.config import (
    EC2Config,
    GitHubConfig,
    RunnerConfig,
    RunnerSpec,
    Timing,
    load_config,
    resolve_config,
)
from skyrunner.constants import Mode, StartPhase
from skyrunner.exceptions import (
    ConfigurationError,
    DeregistrationError,
    InstanceCreationError,
    InstanceReadinessError,
    InstanceReadinessTimeout,
    OrchestrationError,
    RegistrationFailed,
    RegistrationTimeout,
    SkyrunnerError,
    TerminationError,
    TokenIssuanceError,
    WaitError,
    WaitFailed,
    WaitTimeout,
)
from skyrunner.logging import LogConfig, setup_logging
from skyrunner.orchestrator import Orchestrator
from skyrunner.types import (
    PENDING,
    READY,
    ComputeProvider,
    Failed,
    InstanceHandle,
    Pending,
    ReadinessState,
    Ready,
    RegistrationService,
    RegistrationToken,
    WorkerOutputs,
    new_label,
)
from skyrunner.wait import PollWaiter

__all__ = [
    "PENDING",
    "READY",
    "ComputeProvider",
    "ConfigurationError",
    "DeregistrationError",
    "EC2Config",
    "Failed",
    "GitHubConfig",
    "InstanceCreationError",
    "InstanceHandle",
    "InstanceReadinessError",
    "InstanceReadinessTimeout",
    "LogConfig",
    "Mode",
    "OrchestrationError",
    "Orchestrator",
    "Pending",
    "PollWaiter",
    "ReadinessState",
    "Ready",
    "RegistrationFailed",
    "RegistrationService",
    "RegistrationTimeout",
    "RegistrationToken",
    "RunnerConfig",
    "RunnerSpec",
    "SkyrunnerError",
    "StartPhase",
    "TerminationError",
    "Timing",
    "TokenIssuanceError",
    "WaitError",
    "WaitFailed",
    "WaitTimeout",
    "WorkerOutputs",
    "load_config",
    "new_label",
    "resolve_config",
    "setup_logging",
]

"""Custom exception hierarchy for skyrunner.

All skyrunner-specific exceptions inherit from SkyrunnerError, enabling
callers to catch every failure of a start or stop with a single except clause.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skyrunner.constants import StartPhase
    from skyrunner.types import InstanceHandle


class SkyrunnerError(Exception):
    """Base exception for all skyrunner errors."""


class ConfigurationError(SkyrunnerError):
    """Raised for invalid configuration or missing required settings."""


# =============================================================================
# Waiting
# =============================================================================


class WaitError(SkyrunnerError):
    """Raised when a readiness wait does not end in Ready."""


class WaitTimeout(WaitError):
    """Raised when a check is still pending when the timeout runs out."""

    def __init__(self, description: str, timeout: float, attempts: int) -> None:
        self.description = description
        self.timeout = timeout
        self.attempts = attempts
        super().__init__(
            f"{description} not ready after {timeout:g}s ({attempts} checks)"
        )


class WaitFailed(WaitError):
    """Raised when a check reports a terminal failure. Never retried."""

    def __init__(self, description: str, reason: str) -> None:
        self.description = description
        self.reason = reason
        super().__init__(f"{description} failed: {reason}")


# =============================================================================
# Orchestration
# =============================================================================


class OrchestrationError(SkyrunnerError):
    """A lifecycle step failed.

    Carries the step that failed, the phase the start path had reached and
    whatever partial identity is known, so an operator can find leftovers.
    """

    step: str = "orchestration"

    def __init__(
        self,
        cause: BaseException,
        *,
        phase: StartPhase | None = None,
        label: str | None = None,
        handle: InstanceHandle | None = None,
    ) -> None:
        self.cause = cause
        self.phase = phase
        self.label = label
        self.handle = handle
        super().__init__(f"{self.step} failed: {cause}")


class TokenIssuanceError(OrchestrationError):
    step = "registration token"


class InstanceCreationError(OrchestrationError):
    step = "instance creation"


class InstanceReadinessTimeout(OrchestrationError):
    step = "instance readiness"


class InstanceReadinessError(OrchestrationError):
    step = "instance readiness"


class RegistrationTimeout(OrchestrationError):
    step = "runner registration"


class RegistrationFailed(OrchestrationError):
    step = "runner registration"


class TerminationError(OrchestrationError):
    step = "instance termination"


class DeregistrationError(OrchestrationError):
    step = "runner deregistration"


# =============================================================================
# Collaborators
# =============================================================================


class RunnerNotFoundError(SkyrunnerError):
    """Raised when no runner carries the requested label."""

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"runner with label {label!r} not found")


class GitHubAPIError(SkyrunnerError):
    """Error from the GitHub REST API."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)

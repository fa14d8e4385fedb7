"""Start and stop of one ephemeral runner.

start: issue token -> launch instance -> wait running -> wait registered.
stop:  terminate instance -> remove runner.

Failures during start are not compensated: an instance that never becomes
ready, or whose runner never registers, is left in place and named in the
error for the operator (or a higher-level retry) to clean up. A consumed
registration token is never reclaimed either; GitHub expires it.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from loguru import logger

from skyrunner.bootstrap import user_data_builder
from skyrunner.constants import StartPhase
from skyrunner.exceptions import (
    DeregistrationError,
    InstanceCreationError,
    InstanceReadinessError,
    InstanceReadinessTimeout,
    OrchestrationError,
    RegistrationFailed,
    RegistrationTimeout,
    TerminationError,
    TokenIssuanceError,
    WaitTimeout,
)
from skyrunner.types import InstanceHandle, WorkerOutputs, new_label
from skyrunner.wait import PollWaiter

if TYPE_CHECKING:
    from skyrunner.config import RunnerConfig
    from skyrunner.types import ComputeProvider, RegistrationService, UserDataBuilder

log = logger.bind(component="orchestrator")


class Orchestrator:
    """Drives the start and stop lifecycles of a single worker.

    Args:
        config: Immutable process configuration.
        compute: Creates and terminates the instance.
        registry: Issues tokens and tracks the runner registration.
        waiter: Polls readiness checks. Default: a real-time PollWaiter.
        bootstrap: Builds user data from token and label. Default: the
            runner bootstrap from ``config.runner``.
        label_factory: Generates the worker label.
    """

    def __init__(
        self,
        config: RunnerConfig,
        compute: ComputeProvider,
        registry: RegistrationService,
        *,
        waiter: PollWaiter | None = None,
        bootstrap: UserDataBuilder | None = None,
        label_factory: Callable[[], str] = new_label,
    ) -> None:
        self.config = config
        self.compute = compute
        self.registry = registry
        self.waiter = waiter or PollWaiter()
        self.bootstrap = bootstrap or user_data_builder(config.runner, config.github)
        self.label_factory = label_factory
        self.phase = StartPhase.IDLE

    def _fail(
        self,
        error_cls: type[OrchestrationError],
        cause: BaseException,
        *,
        label: str | None = None,
        handle: InstanceHandle | None = None,
    ) -> OrchestrationError:
        error = error_cls(cause, phase=self.phase, label=label, handle=handle)
        self.phase = StartPhase.FAILED
        log.error("{msg}", msg=str(error))
        return error

    # =========================================================================
    # Start
    # =========================================================================

    def start(self) -> WorkerOutputs:
        """Provision a worker and wait until its runner is online.

        Raises:
            TokenIssuanceError: No token; nothing was created.
            InstanceCreationError: Launch failed; the token is spent.
            InstanceReadinessTimeout, InstanceReadinessError: The instance
                exists but never reached running.
            RegistrationTimeout, RegistrationFailed: The instance runs but its
                runner never came online.
        """
        self.phase = StartPhase.IDLE
        timing = self.config.timing

        try:
            token = self.registry.issue_token()
        except Exception as e:
            raise self._fail(TokenIssuanceError, e) from e
        self.phase = StartPhase.TOKEN_ISSUED

        label = self.label_factory()
        try:
            handle = self.compute.create(self.bootstrap(token, label), label)
        except Exception as e:
            log.warning("Registration token for {label} was issued but not used", label=label)
            raise self._fail(InstanceCreationError, e, label=label) from e
        self.phase = StartPhase.INSTANCE_REQUESTED
        log.info("Instance {id} requested for runner {label}", id=handle.instance_id, label=label)

        try:
            self.waiter.wait(
                lambda: self.compute.is_running(handle),
                timeout=timing.instance_timeout,
                interval=timing.instance_interval,
                description=f"instance {handle.instance_id}",
            )
        except WaitTimeout as e:
            raise self._fail(InstanceReadinessTimeout, e, label=label, handle=handle) from e
        except Exception as e:
            raise self._fail(InstanceReadinessError, e, label=label, handle=handle) from e
        self.phase = StartPhase.INSTANCE_RUNNING
        log.info("Instance {id} is running", id=handle.instance_id)

        try:
            self.waiter.wait(
                lambda: self.registry.is_registered(label),
                timeout=timing.registration_timeout,
                interval=timing.registration_interval,
                quiet_period=timing.quiet_period,
                description=f"runner {label} on {handle.instance_id}",
            )
        except WaitTimeout as e:
            raise self._fail(RegistrationTimeout, e, label=label, handle=handle) from e
        except Exception as e:
            raise self._fail(RegistrationFailed, e, label=label, handle=handle) from e
        self.phase = StartPhase.AGENT_REGISTERED
        log.info("Runner {label} is registered", label=label)

        return WorkerOutputs(label=label, instance_id=handle.instance_id, region=handle.region)

    # =========================================================================
    # Stop
    # =========================================================================

    def stop(self, handle: InstanceHandle, label: str) -> None:
        """Terminate the instance, then remove the runner.

        Both steps are always attempted. The first failure is raised; a
        second one is logged and attached to it as a note.
        """
        errors: list[OrchestrationError] = []

        try:
            self.compute.terminate(handle)
        except Exception as e:
            errors.append(TerminationError(e, label=label, handle=handle))

        try:
            self.registry.remove(label)
        except Exception as e:
            errors.append(DeregistrationError(e, label=label, handle=handle))

        if not errors:
            log.info("Worker {label} on {id} is torn down", label=label, id=handle.instance_id)
            return

        first, *rest = errors
        for other in rest:
            log.error("{msg}", msg=str(other))
            first.add_note(f"also: {other}")
        log.error("{msg}", msg=str(first))
        raise first from first.cause

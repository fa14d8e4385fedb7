"""Run-scoped values and collaborator protocols.

Nothing here is persisted: a start produces a label and an instance
handle, and the caller threads them through to the matching stop.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Final, Protocol, runtime_checkable

from skyrunner.constants import OUTPUT_INSTANCE_ID, OUTPUT_LABEL, OUTPUT_REGION

__all__ = [
    "PENDING",
    "READY",
    "ComputeProvider",
    "Failed",
    "InstanceHandle",
    "Pending",
    "ReadinessState",
    "Ready",
    "RegistrationService",
    "RegistrationToken",
    "WorkerOutputs",
    "new_label",
]


# =============================================================================
# Readiness
# =============================================================================


@dataclass(frozen=True, slots=True)
class Pending:
    """Not ready yet, check again later."""


@dataclass(frozen=True, slots=True)
class Ready:
    """The resource reached the state being waited for."""


@dataclass(frozen=True, slots=True)
class Failed:
    """The resource will never become ready."""

    reason: str


type ReadinessState = Pending | Ready | Failed

PENDING: Final = Pending()
READY: Final = Ready()


# =============================================================================
# Identity
# =============================================================================


def new_label() -> str:
    """Generate a fresh worker label, e.g. ``'3f9a1c07be'``."""
    return uuid.uuid4().hex[:10]


@dataclass(frozen=True, slots=True)
class RegistrationToken:
    """One-time runner registration secret."""

    value: str = field(repr=False)
    expires_at: str | None = None


@dataclass(frozen=True, slots=True)
class InstanceHandle:
    """Provider-assigned instance identity."""

    instance_id: str
    region: str


@dataclass(frozen=True, slots=True)
class WorkerOutputs:
    """What a caller must keep from a start to run the matching stop."""

    label: str
    instance_id: str
    region: str

    def as_dict(self) -> dict[str, str]:
        return {
            OUTPUT_LABEL: self.label,
            OUTPUT_INSTANCE_ID: self.instance_id,
            OUTPUT_REGION: self.region,
        }

    @property
    def handle(self) -> InstanceHandle:
        return InstanceHandle(instance_id=self.instance_id, region=self.region)


# =============================================================================
# Collaborators
# =============================================================================


type UserDataBuilder = Callable[[RegistrationToken, str], str]
"""Builds the instance bootstrap payload from a token and a label."""


@runtime_checkable
class ComputeProvider(Protocol):
    """Creates, inspects and terminates a single compute instance."""

    def create(self, user_data: str, label: str) -> InstanceHandle: ...
    def is_running(self, handle: InstanceHandle) -> ReadinessState: ...
    def terminate(self, handle: InstanceHandle) -> None: ...


@runtime_checkable
class RegistrationService(Protocol):
    """Issues registration tokens and tracks registered runners by label."""

    def issue_token(self) -> RegistrationToken: ...
    def is_registered(self, label: str) -> ReadinessState: ...
    def remove(self, label: str) -> None: ...

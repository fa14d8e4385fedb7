from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

import pytest

from skyrunner.config import EC2Config, GitHubConfig, RunnerConfig, Timing
from skyrunner.constants import Mode
from skyrunner.types import (
    READY,
    InstanceHandle,
    ReadinessState,
    RegistrationToken,
)
from skyrunner.wait import PollWaiter


class FakeClock:
    """Virtual time: sleeping advances the clock instantly."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class ScriptedCheck:
    """Returns the scripted states in order, then repeats the last one."""

    def __init__(self, states: Iterable[ReadinessState]) -> None:
        self.states = list(states)
        self.calls = 0

    def __call__(self) -> ReadinessState:
        state = self.states[min(self.calls, len(self.states) - 1)]
        self.calls += 1
        return state


class FakeCompute:
    def __init__(
        self,
        calls: list[str],
        running: Iterable[ReadinessState] = (READY,),
        handle: InstanceHandle = InstanceHandle("i-123", "us-east-1"),
        create_error: Exception | None = None,
        terminate_error: Exception | None = None,
    ) -> None:
        self.calls = calls
        self.running = ScriptedCheck(running)
        self.handle = handle
        self.create_error = create_error
        self.terminate_error = terminate_error
        self.created: list[tuple[str, str]] = []
        self.terminated: list[InstanceHandle] = []

    def create(self, user_data: str, label: str) -> InstanceHandle:
        self.calls.append("create")
        if self.create_error:
            raise self.create_error
        self.created.append((user_data, label))
        return self.handle

    def is_running(self, handle: InstanceHandle) -> ReadinessState:
        self.calls.append("is_running")
        return self.running()

    def terminate(self, handle: InstanceHandle) -> None:
        self.calls.append("terminate")
        if self.terminate_error:
            raise self.terminate_error
        self.terminated.append(handle)


class FakeRegistry:
    def __init__(
        self,
        calls: list[str],
        registered: Iterable[ReadinessState] = (READY,),
        token: str = "T1",
        token_error: Exception | None = None,
        remove_error: Exception | None = None,
    ) -> None:
        self.calls = calls
        self.registered = ScriptedCheck(registered)
        self.token = token
        self.token_error = token_error
        self.remove_error = remove_error
        self.removed: list[str] = []
        self.checked_labels: list[str] = []

    def issue_token(self) -> RegistrationToken:
        self.calls.append("issue_token")
        if self.token_error:
            raise self.token_error
        return RegistrationToken(self.token)

    def is_registered(self, label: str) -> ReadinessState:
        self.calls.append("is_registered")
        self.checked_labels.append(label)
        return self.registered()

    def remove(self, label: str) -> None:
        self.calls.append("remove")
        if self.remove_error:
            raise self.remove_error
        self.removed.append(label)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def waiter(clock: FakeClock) -> PollWaiter:
    return PollWaiter(sleep=clock.sleep, clock=clock)


@pytest.fixture
def calls() -> list[str]:
    return []


@pytest.fixture
def config() -> RunnerConfig:
    return RunnerConfig(
        github=GitHubConfig(token="ghp_test", owner="acme", repo="widgets"),
        ec2=EC2Config(
            image_id="ami-123",
            instance_type="c6i.large",
            subnet_id="subnet-1",
            security_group_id="sg-1",
            region="us-east-1",
        ),
        timing=Timing(
            instance_timeout=60,
            instance_interval=5,
            registration_timeout=60,
            registration_interval=10,
            quiet_period=30,
        ),
    )


@pytest.fixture
def stop_config(config: RunnerConfig) -> RunnerConfig:
    return replace(config, mode=Mode.STOP, label="abc123", instance_id="i-123")


@pytest.fixture
def scripted() -> type[ScriptedCheck]:
    return ScriptedCheck


@pytest.fixture
def make_compute(calls: list[str]):
    def factory(**kwargs: object) -> FakeCompute:
        return FakeCompute(calls, **kwargs)  # type: ignore[arg-type]

    return factory


@pytest.fixture
def make_registry(calls: list[str]):
    def factory(**kwargs: object) -> FakeRegistry:
        return FakeRegistry(calls, **kwargs)  # type: ignore[arg-type]

    return factory

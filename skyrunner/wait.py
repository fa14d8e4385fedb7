"""Bounded polling over a readiness check.

Turns a one-shot "is it ready?" call into a wait with a deadline:

    waiter = PollWaiter()
    waiter.wait(lambda: compute.is_running(handle), timeout=300, interval=5)

The check is called immediately and then every ``interval`` seconds.
``Ready`` ends the wait, ``Failed`` aborts it at once, and a ``Pending``
whose next sleep would reach the deadline ends it with a timeout.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from loguru import logger
from tenacity import (
    RetryCallState,
    RetryError,
    retry,
    retry_if_exception_type,
    wait_fixed,
)

from skyrunner.exceptions import WaitFailed, WaitTimeout
from skyrunner.types import Failed, Pending, ReadinessState, Ready

log = logger.bind(component="wait")

type Check = Callable[[], ReadinessState]
type Clock = Callable[[], float]
type Sleep = Callable[[float], None]


class _NotReadyError(Exception):
    """Check still pending - retry."""


class PollWaiter:
    """Repeatedly evaluates a readiness check until ready, failed or out of time.

    Args:
        sleep: Suspends the caller between checks. Default: ``time.sleep``.
        clock: Monotonic time source used for the deadline.
    """

    def __init__(self, sleep: Sleep = time.sleep, clock: Clock = time.monotonic) -> None:
        self._sleep = sleep
        self._clock = clock

    def wait(
        self,
        check: Check,
        *,
        timeout: float,
        interval: float,
        quiet_period: float = 0,
        description: str = "resource",
    ) -> None:
        """Block until ``check`` returns Ready.

        Args:
            check: Readiness check. Exceptions it raises propagate unchanged.
            timeout: Seconds after the first check during which retries happen.
                With ``timeout < interval`` the check runs exactly once.
            interval: Seconds between checks. Must be positive.
            quiet_period: Seconds to sleep once before the first check.
            description: Names the awaited thing in logs and errors.

        Raises:
            WaitFailed: The check reported Failed.
            WaitTimeout: The check was still Pending at the deadline.
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if timeout < 0:
            raise ValueError(f"timeout must not be negative, got {timeout}")

        if quiet_period > 0:
            log.debug(
                "Waiting {quiet}s before checking {what}",
                quiet=quiet_period, what=description,
            )
            self._sleep(quiet_period)

        started = self._clock()
        attempts = 0

        def out_of_time(_: RetryCallState) -> bool:
            return self._clock() - started + interval >= timeout

        def before_sleep(state: RetryCallState) -> None:
            log.debug(
                "{what} pending after check {n}, next in {interval}s",
                what=description, n=state.attempt_number, interval=interval,
            )

        @retry(
            stop=out_of_time,
            wait=wait_fixed(interval),
            retry=retry_if_exception_type(_NotReadyError),
            sleep=self._sleep,
            before_sleep=before_sleep,
        )
        def _poll() -> None:
            nonlocal attempts
            attempts += 1
            match check():
                case Ready():
                    return
                case Failed(reason=reason):
                    raise WaitFailed(description, reason)
                case Pending():
                    raise _NotReadyError()
                case other:
                    raise TypeError(f"check returned {other!r}, expected a ReadinessState")

        try:
            _poll()
        except RetryError as e:
            raise WaitTimeout(description, timeout, attempts) from e

        log.debug("{what} ready after {n} checks", what=description, n=attempts)

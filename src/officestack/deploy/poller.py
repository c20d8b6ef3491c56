# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/deploy/poller.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from officestack.errors import DriverError
from officestack.observers.dispatcher import EventBus
from officestack.observers.events import ReadinessAttempt, WaiterCancelled, WaiterSucceeded, WaiterTimedOut
from officestack.utils.execution import ExecutionContext
from officestack.utils.retry import BackoffPolicy
from officestack.workloads.models import ReadinessState, Workload
from officestack.workloads.readiness import status_ready

log = logging.getLogger("officestack")


class PollOutcome(str, Enum):
    READY = "Ready"
    TIMED_OUT = "TimedOut"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    attempts: int
    last_state: Optional[ReadinessState] = None
    last_error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.outcome == PollOutcome.READY


def wait_until_ready(
    workload: Workload,
    driver,
    policy: Optional[BackoffPolicy] = None,
    *,
    ctx: Optional[ExecutionContext] = None,
    bus: Optional[EventBus] = None,
) -> PollResult:
    """
    Evaluate the workload's readiness predicate up to `policy.max_attempts`
    times, sleeping `policy.delay(n)` between attempts (never after the last).

    A driver error during a check counts as a not-ready attempt and is kept
    as `last_error`. Cancellation is checked before every attempt and ends
    any backoff sleep early.
    """
    policy = policy or workload.policy
    ctx = ctx or ExecutionContext()
    bus = bus or EventBus()
    check = workload.readiness or status_ready

    state: Optional[ReadinessState] = None
    last_error: Optional[str] = None
    attempts = 0

    for attempt in range(1, policy.max_attempts + 1):
        if ctx.cancelled:
            break
        attempts = attempt

        error = None
        try:
            state = check(driver, workload)
        except DriverError as e:
            state = ReadinessState.PENDING
            error = last_error = str(e)

        log.debug("[poller] %s attempt %d/%d: %s", workload.name, attempt, policy.max_attempts, state.value)
        bus.publish(
            ReadinessAttempt,
            name=workload.name,
            attempt=attempt,
            max_attempts=policy.max_attempts,
            state=state.value,
            error=error,
        )

        if state == ReadinessState.READY:
            log.info("[poller] %s ready after %d attempt(s)", workload.name, attempt)
            bus.publish(WaiterSucceeded, name=workload.name, attempts=attempt)
            return PollResult(PollOutcome.READY, attempt, state, last_error)

        if attempt < policy.max_attempts and ctx.sleep(policy.delay(attempt)):
            break

    if ctx.cancelled:
        log.warning("[poller] wait for %s cancelled after %d attempt(s)", workload.name, attempts)
        bus.publish(WaiterCancelled, name=workload.name, attempts=attempts)
        return PollResult(PollOutcome.CANCELLED, attempts, state, last_error)

    last_state = state.value if state else None
    log.error("[poller] %s not ready after %d attempts (last state=%s)", workload.name, attempts, last_state)
    bus.publish(WaiterTimedOut, name=workload.name, attempts=attempts, last_state=last_state, last_error=last_error)
    return PollResult(PollOutcome.TIMED_OUT, attempts, state, last_error)

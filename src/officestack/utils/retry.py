# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import random
from typing import Callable, Literal, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from officestack.errors import ProvisionCancelled, TransientError
from officestack.utils.execution import ExecutionContext

T = TypeVar("T")


class BackoffPolicy(BaseModel):
    """
    Attempt budget and delay schedule for a fallible operation.

    max_attempts: total number of attempts (not retries)
    interval: base delay in seconds between attempts
    mode: "constant" waits `interval` every time, "linear" waits interval * attempt
    jitter: multiplicative spread, 0.2 means +/-20%
    max_interval: optional cap applied before jitter
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=12, ge=1)
    interval: float = Field(default=5.0, ge=0)
    mode: Literal["constant", "linear"] = "constant"
    jitter: float = Field(default=0.0, ge=0, lt=1)
    max_interval: Optional[float] = Field(default=None, ge=0)

    def delay(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) attempt."""
        if self.mode == "linear":
            base = self.interval * attempt
        else:
            base = self.interval
        if self.max_interval is not None:
            base = min(base, self.max_interval)
        if self.jitter:
            base *= random.uniform(1 - self.jitter, 1 + self.jitter)
        return base


def retry_call(
    fn: Callable[[], T],
    *,
    policy: BackoffPolicy,
    ctx: Optional[ExecutionContext] = None,
    retry_on: Tuple[Type[BaseException], ...] = (TransientError,),
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
) -> Tuple[T, int]:
    """
    Call *fn* until it succeeds or the policy is exhausted.

    Returns (value, attempts). When every attempt fails the last exception
    is re-raised unchanged, so callers see the original error type.
    Exceptions outside *retry_on* propagate immediately.
    """
    ctx = ctx or ExecutionContext()
    last_exc: Optional[BaseException] = None

    for attempt in range(1, policy.max_attempts + 1):
        if ctx.cancelled:
            raise ProvisionCancelled(f"cancelled before attempt {attempt}")
        try:
            return fn(), attempt
        except retry_on as exc:
            last_exc = exc
            if attempt == policy.max_attempts:
                break
            delay = policy.delay(attempt)
            if on_retry:
                on_retry(attempt, exc, delay)
            if ctx.sleep(delay):
                raise ProvisionCancelled(f"cancelled while waiting to retry (attempt {attempt})") from exc

    assert last_exc is not None
    raise last_exc

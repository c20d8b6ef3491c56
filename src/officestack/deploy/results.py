# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/deploy/results.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from officestack.errors import ProvisionCancelled, ProvisionError


class StepStatus(str, Enum):
    SUCCESS = "SUCCESS"
    RETRIED = "RETRIED"
    FAILED = "FAILED"


@dataclass
class StepResult:
    step: str
    status: StepStatus
    attempts: int = 1
    reason: Optional[str] = None
    error: Optional[ProvisionError] = None
    skipped: bool = False                   # idempotent short-circuit
    duration_ms: int = 0
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def done(cls, step: str, *, attempts: int = 1, **kwargs: Any) -> "StepResult":
        """SUCCESS for one attempt, RETRIED(n) when it took more."""
        status = StepStatus.RETRIED if attempts > 1 else StepStatus.SUCCESS
        return cls(step=step, status=status, attempts=attempts, **kwargs)

    @classmethod
    def skip(cls, step: str, reason: str) -> "StepResult":
        return cls(step=step, status=StepStatus.SUCCESS, attempts=0, reason=reason, skipped=True)

    @classmethod
    def failed(cls, step: str, error: ProvisionError, **kwargs: Any) -> "StepResult":
        return cls(step=step, status=StepStatus.FAILED, reason=str(error), error=error, **kwargs)

    @property
    def ok(self) -> bool:
        return self.status != StepStatus.FAILED


@dataclass
class RunReport:
    run_id: Optional[str] = None
    results: List[StepResult] = field(default_factory=list)
    error: Optional[ProvisionError] = None
    urls: Dict[str, str] = field(default_factory=dict)
    diagnostics: Dict[str, str] = field(default_factory=dict)

    def add(self, result: StepResult) -> None:
        self.results.append(result)

    @property
    def success(self) -> bool:
        return self.error is None and all(r.ok for r in self.results)

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, ProvisionCancelled)

    @property
    def failed_step(self) -> Optional[str]:
        for r in self.results:
            if not r.ok:
                return r.step
        return None

    @property
    def warnings(self) -> List[str]:
        return [w for r in self.results for w in r.data.get("warnings", [])]

    @property
    def exit_code(self) -> int:
        if self.success:
            return 0
        return 130 if self.cancelled else 1

    def step_names(self) -> List[str]:
        return [r.step for r in self.results]

    def summary(self) -> str:
        ok = sum(1 for r in self.results if r.status == StepStatus.SUCCESS and not r.skipped)
        retried = sum(1 for r in self.results if r.status == StepStatus.RETRIED)
        failed = sum(1 for r in self.results if r.status == StepStatus.FAILED)
        skipped = sum(1 for r in self.results if r.skipped)
        return f"SUCCESS={ok} RETRIED={retried} FAILED={failed} SKIPPED={skipped}"

# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/observers/events.py

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str                 # ISO timestamp
    run_id: str             # correlates all events in a single run
    env: str                # backend: kubernetes/compose
    context: Optional[str]  # namespace or compose project

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(env: str, context: Optional[str], run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "env": env,
        "context": context,
    }


# ---------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    order: List[str]

@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    error: str


# ---------------------------------------------------------------------
# Step lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StepStarted(BaseEvent):
    step: str
    index: int
    total: int

@dataclass(frozen=True)
class StepSucceeded(BaseEvent):
    step: str
    attempts: int
    duration_ms: int

@dataclass(frozen=True)
class StepSkipped(BaseEvent):
    step: str
    reason: str

@dataclass(frozen=True)
class StepFailed(BaseEvent):
    step: str
    kind: str
    error: str

@dataclass(frozen=True)
class RetryScheduled(BaseEvent):
    step: str
    attempt: int
    delay_s: float
    error: str


# ---------------------------------------------------------------------
# Waiter lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ReadinessAttempt(BaseEvent):
    name: str
    attempt: int
    max_attempts: int
    state: str
    error: Optional[str] = None

@dataclass(frozen=True)
class WaiterSucceeded(BaseEvent):
    name: str
    attempts: int

@dataclass(frozen=True)
class WaiterTimedOut(BaseEvent):
    name: str
    attempts: int
    last_state: Optional[str] = None
    last_error: Optional[str] = None

@dataclass(frozen=True)
class WaiterCancelled(BaseEvent):
    name: str
    attempts: int


# ---------------------------------------------------------------------
# Cleanup, diagnostics & summary
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class CleanupWarning(BaseEvent):
    selector: str
    error: str

@dataclass(frozen=True)
class DiagnosticsCollected(BaseEvent):
    name: str
    output: str

@dataclass(frozen=True)
class RunSummary(BaseEvent):
    success: bool
    succeeded: int
    retried: int
    failed: int
    skipped: int
    failed_step: Optional[str] = None
    error: Optional[str] = None

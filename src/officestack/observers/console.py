# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/observers/console.py
import typer

from .interface import Observer
from .events import (
    BaseEvent,
    CleanupWarning,
    PlanComputed,
    RetryScheduled,
    StepFailed,
    StepSkipped,
    StepStarted,
    StepSucceeded,
    WaiterTimedOut,
)


class ConsoleObserver(Observer):
    """Short progress lines for humans; everything else goes to the log file."""

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, PlanComputed):
            typer.echo(f"plan: {' -> '.join(event.order)}")
        elif isinstance(event, StepStarted):
            typer.echo(f"[{event.index}/{event.total}] {event.step} ...")
        elif isinstance(event, StepSucceeded):
            extra = f" after {event.attempts} attempts" if event.attempts > 1 else ""
            typer.secho(f"  ok {event.step}{extra} ({event.duration_ms} ms)", fg=typer.colors.GREEN)
        elif isinstance(event, StepSkipped):
            typer.echo(f"  skipped {event.step}: {event.reason}")
        elif isinstance(event, RetryScheduled):
            typer.secho(f"  retry {event.step} in {event.delay_s:.1f}s: {event.error}", fg=typer.colors.YELLOW)
        elif isinstance(event, CleanupWarning):
            typer.secho(f"  warning: cleanup of {event.selector} failed: {event.error}", fg=typer.colors.YELLOW)
        elif isinstance(event, WaiterTimedOut):
            typer.secho(f"  {event.name} not ready after {event.attempts} attempts", fg=typer.colors.RED, err=True)
        elif isinstance(event, StepFailed):
            typer.secho(f"  FAILED {event.step}: {event.kind}: {event.error}", fg=typer.colors.RED, err=True)

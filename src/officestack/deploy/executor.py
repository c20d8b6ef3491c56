# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/deploy/executor.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from officestack.config.loader import parse_config
from officestack.config.models import StackConfig
from officestack.errors import (
    ApplyError,
    ConfigurationError,
    ProvisionCancelled,
    ProvisionError,
    ReadinessTimeout,
    ToolInstallError,
    TransientError,
)
from officestack.host.runtime import ContainerRuntime
from officestack.host.tools import HostSetup, ToolSpec, default_tools
from officestack.observers.dispatcher import EventBus
from officestack.observers.interface import Observer
from officestack.observers.events import (
    DiagnosticsCollected,
    PlanComputed,
    PlanFailed,
    RetryScheduled,
    RunSummary,
    StepFailed,
    StepSkipped,
    StepStarted,
    StepSucceeded,
)
from officestack.render.base import Renderer
from officestack.utils.execution import ExecutionContext
from officestack.utils.retry import BackoffPolicy, retry_call
from officestack.workloads.models import ReadinessState, Workload
from officestack.workloads.registry import build_workloads, renderer_for

from .cleanup import cleanup as run_cleanup
from .planner import Step, StepKind, build_plan
from .poller import PollOutcome, wait_until_ready
from .results import RunReport, StepResult, StepStatus

log = logging.getLogger("officestack")

ConfigInput = Union[StackConfig, Mapping[str, Any]]


class Provisioner:
    """
    Sequential step engine: cleanup -> host tooling -> runtime -> apply and
    verify every workload in dependency order -> report.

    Every side effect goes through a collaborator (driver, host, runtime).
    The first fatal error aborts the plan; nothing is rolled back.
    """

    def __init__(
        self,
        driver,
        *,
        renderer: Optional[Renderer] = None,
        workloads: Optional[Sequence[Workload]] = None,
        host: Optional[HostSetup] = None,
        runtime: Optional[ContainerRuntime] = None,
        tools: Optional[Sequence[ToolSpec]] = None,
        observers: Optional[List[Observer]] = None,
        bus: Optional[EventBus] = None,
        ctx: Optional[ExecutionContext] = None,
        cleanup: bool = True,
        diagnostics: bool = True,
    ):
        self.driver = driver
        self.renderer = renderer
        self.workloads = list(workloads) if workloads is not None else None
        self.host = host
        self.runtime = runtime
        self.tools = list(tools) if tools is not None else None
        self.bus = bus or EventBus(observers=observers)
        self.ctx = ctx or ExecutionContext()
        self.cleanup = cleanup
        self.diagnostics = diagnostics

    # ------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------

    def _renderer(self, cfg: StackConfig) -> Renderer:
        return self.renderer or renderer_for(cfg.backend)

    def _tools(self, cfg: StackConfig) -> List[ToolSpec]:
        if self.host is None or not cfg.tools.install:
            return []
        if self.tools is not None:
            return self.tools
        return default_tools(cfg)

    def plan(self, config: ConfigInput) -> List[Step]:
        cfg = parse_config(config)
        workloads = self.workloads if self.workloads is not None else build_workloads(cfg, self._renderer(cfg))
        return build_plan(
            workloads,
            cleanup=self.cleanup,
            preflight=self.host is not None and bool(cfg.runtime.required_free_ports),
            tools=self._tools(cfg),
            runtime=self.runtime.name if self.runtime is not None else None,
        )

    # ------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------

    def run(self, config: ConfigInput) -> RunReport:
        report = RunReport(run_id=self.bus.run_id)

        try:
            cfg = parse_config(config)
        except ConfigurationError as e:
            log.error("[provision] invalid configuration: %s", e)
            return self._abort(report, "Validate", e)

        self.bus.bind(env=cfg.backend, context=cfg.namespace)
        try:
            steps = self.plan(cfg)
        except ConfigurationError as e:
            log.error("[provision] cannot plan: %s", e)
            return self._abort(report, "Plan", e)

        return self._execute(cfg, steps, report)

    def reset(self, config: ConfigInput) -> RunReport:
        """Cleanup-only mode. Warnings never fail the run."""
        report = RunReport(run_id=self.bus.run_id)
        try:
            cfg = parse_config(config)
        except ConfigurationError as e:
            return self._abort(report, "Validate", e)

        self.bus.bind(env=cfg.backend, context=cfg.namespace)
        return self._execute(cfg, [Step(StepKind.CLEANUP)], report)

    # ------------------------------------------------------------
    # Execution loop
    # ------------------------------------------------------------

    def _abort(self, report: RunReport, step: str, error: ProvisionError) -> RunReport:
        report.add(StepResult.failed(step, error))
        report.error = error
        self.bus.publish(PlanFailed, error=str(error))
        self._summarize(report)
        return report

    def _execute(self, cfg: StackConfig, steps: List[Step], report: RunReport) -> RunReport:
        labels = [s.label for s in steps]
        log.info("[provision] plan: %s", " -> ".join(labels))
        self.bus.publish(PlanComputed, order=labels)

        total = len(steps)
        for index, step in enumerate(steps, start=1):
            if self.ctx.cancelled:
                self._fail(report, step, ProvisionCancelled(f"run cancelled before {step.label}"), 0)
                break

            self.bus.publish(StepStarted, step=step.label, index=index, total=total)
            log.info("[provision] [%d/%d] %s", index, total, step.label)
            start = time.monotonic()

            try:
                result = self._dispatch(step, cfg, list(report.results))
            except ProvisionError as e:
                if self.ctx.cancelled and not isinstance(e, ProvisionCancelled):
                    # SIGINT reaches the child too: report the cancel, not its exit status
                    log.debug("[provision] %s failed after cancel: %s", step.label, e)
                    e = ProvisionCancelled(f"run cancelled during {step.label} ({e.kind}: {e})", workload=e.workload)
                self._fail(report, step, e, self._elapsed(start))
                break

            result.duration_ms = self._elapsed(start)
            report.add(result)
            report.urls.update(result.data.get("urls", {}))
            if result.skipped:
                log.info("[provision] %s skipped: %s", step.label, result.reason)
                self.bus.publish(StepSkipped, step=step.label, reason=result.reason or "")
            else:
                self.bus.publish(StepSucceeded, step=step.label, attempts=result.attempts,
                                 duration_ms=result.duration_ms)

        self._summarize(report)
        return report

    @staticmethod
    def _elapsed(start: float) -> int:
        return int((time.monotonic() - start) * 1000)

    def _fail(self, report: RunReport, step: Step, error: ProvisionError, duration_ms: int) -> None:
        if isinstance(error, ProvisionCancelled):
            log.warning("[provision] %s: %s", step.label, error)
        else:
            log.error("[provision] %s failed: %s: %s", step.label, error.kind, error)

        report.add(StepResult.failed(step.label, error, duration_ms=duration_ms))
        report.error = error
        self.bus.publish(StepFailed, step=step.label, kind=error.kind, error=str(error))

        if self.diagnostics and step.workload is not None and isinstance(error, (ApplyError, ReadinessTimeout)):
            self._collect_diagnostics(step.workload, report)

    def _collect_diagnostics(self, workload: Workload, report: RunReport) -> None:
        try:
            text = self.driver.diagnostics(workload.ref)
        except Exception as e:
            text = f"<diagnostics unavailable: {e}>"
        report.diagnostics[workload.name] = text
        log.info("[provision] diagnostics for %s collected (%d chars)", workload.name, len(text))
        self.bus.publish(DiagnosticsCollected, name=workload.name, output=text)

    def _summarize(self, report: RunReport) -> None:
        counts = report.summary()
        log.info("[provision] %s: %s", "SUCCESS" if report.success else "FAILED", counts)
        self.bus.publish(
            RunSummary,
            success=report.success,
            succeeded=sum(1 for r in report.results if r.status == StepStatus.SUCCESS and not r.skipped),
            retried=sum(1 for r in report.results if r.status == StepStatus.RETRIED),
            failed=sum(1 for r in report.results if r.status == StepStatus.FAILED),
            skipped=sum(1 for r in report.results if r.skipped),
            failed_step=report.failed_step,
            error=str(report.error) if report.error else None,
        )

    # ------------------------------------------------------------
    # Steps: each takes (step, config, history) and returns a StepResult
    # ------------------------------------------------------------

    def _dispatch(self, step: Step, cfg: StackConfig, history: List[StepResult]) -> StepResult:
        handlers: Dict[StepKind, Callable[[Step, StackConfig, List[StepResult]], StepResult]] = {
            StepKind.CLEANUP: self._cleanup,
            StepKind.PREFLIGHT: self._preflight,
            StepKind.INSTALL_TOOL: self._install_tool,
            StepKind.START_RUNTIME: self._start_runtime,
            StepKind.APPLY: self._apply,
            StepKind.VERIFY: self._verify,
            StepKind.REPORT: self._report,
        }
        return handlers[step.kind](step, cfg, history)

    def _retry(self, step: Step, fn: Callable[[], Any], policy: BackoffPolicy, retry_on=(TransientError,)):
        def on_retry(attempt: int, exc: BaseException, delay: float) -> None:
            log.warning("[provision] %s attempt %d failed (%s), retrying in %.1fs", step.label, attempt, exc, delay)
            self.bus.publish(RetryScheduled, step=step.label, attempt=attempt, delay_s=delay, error=str(exc))

        return retry_call(fn, policy=policy, ctx=self.ctx, retry_on=retry_on, on_retry=on_retry)

    def _cleanup(self, step: Step, cfg: StackConfig, history: List[StepResult]) -> StepResult:
        return run_cleanup(self.driver, self._renderer(cfg).cleanup_selectors(cfg), bus=self.bus)

    def _preflight(self, step: Step, cfg: StackConfig, history: List[StepResult]) -> StepResult:
        ports = self.host.check_ports(cfg.runtime.required_free_ports)
        return StepResult.done(step.label, data={"ports": ports})

    def _install_tool(self, step: Step, cfg: StackConfig, history: List[StepResult]) -> StepResult:
        tool = step.tool
        if self.host.is_installed(tool):
            return StepResult.skip(step.label, f"{tool.name} already installed")

        _, attempts = self._retry(
            step,
            lambda: self.host.install(tool),
            cfg.policies.install,
            retry_on=(TransientError, ToolInstallError),
        )
        return StepResult.done(step.label, attempts=attempts)

    def _start_runtime(self, step: Step, cfg: StackConfig, history: List[StepResult]) -> StepResult:
        if self.runtime.is_running():
            return StepResult.skip(step.label, f"{self.runtime.name} already running")

        _, attempts = self._retry(step, self.runtime.start, cfg.policies.install)
        return StepResult.done(step.label, attempts=attempts)

    def _apply(self, step: Step, cfg: StackConfig, history: List[StepResult]) -> StepResult:
        workload = step.workload
        verified = {r.step for r in history if r.ok}
        missing = [d for d in workload.dependencies if f"{StepKind.VERIFY.value}({d})" not in verified]
        if missing:
            raise ConfigurationError(
                f"'{workload.name}' cannot be applied before {', '.join(missing)} is verified",
                workload=workload.name,
            )

        if workload.idempotent:
            state, _ = self._retry(step, lambda: self.driver.status(workload.ref), cfg.policies.apply)
            if state == ReadinessState.READY:
                return StepResult.skip(step.label, f"{workload.ref} already Ready")

        manifest = workload.render(cfg)
        if manifest is None or manifest.is_empty():
            raise ApplyError(f"no manifest rendered for '{workload.name}'", workload=workload.name)

        try:
            _, attempts = self._retry(step, lambda: self.driver.apply(manifest), cfg.policies.apply)
        except ApplyError as e:
            e.workload = e.workload or workload.name
            raise
        return StepResult.done(step.label, attempts=attempts)

    def _verify(self, step: Step, cfg: StackConfig, history: List[StepResult]) -> StepResult:
        workload = step.workload
        result = wait_until_ready(workload, self.driver, workload.policy, ctx=self.ctx, bus=self.bus)

        if result.outcome == PollOutcome.CANCELLED:
            raise ProvisionCancelled(f"cancelled while waiting for '{workload.name}'", workload=workload.name)
        if result.outcome == PollOutcome.TIMED_OUT:
            raise ReadinessTimeout(
                workload.name,
                attempts=result.attempts,
                last_state=result.last_state.value if result.last_state else None,
                last_error=result.last_error,
            )
        return StepResult.done(step.label, attempts=result.attempts)

    def _report(self, step: Step, cfg: StackConfig, history: List[StepResult]) -> StepResult:
        urls = cfg.access_urls()
        for label, url in urls.items():
            log.info("[provision] %-20s %s", label, url)
        return StepResult.done(step.label, data={"urls": urls})

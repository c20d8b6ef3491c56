# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/cli/app.py
from __future__ import annotations

import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

from officestack.config.loader import load_config, parse_config
from officestack.config.models import StackConfig
from officestack.deploy.executor import Provisioner
from officestack.deploy.results import RunReport
from officestack.drivers.compose import ComposeDriver
from officestack.drivers.kubectl import KubectlDriver
from officestack.errors import ConfigurationError, LockHeldError, ProvisionError
from officestack.host.runtime import runtime_for
from officestack.host.tools import HostSetup
from officestack.logging.log import init_logging
from officestack.observers.console import ConsoleObserver
from officestack.observers.dispatcher import EventBus
from officestack.observers.jsonfile import JsonFileObserver
from officestack.observers.logger import LoggerObserver
from officestack.utils.execution import ExecutionContext
from officestack.utils.lock import target_lock
from officestack.workloads.registry import renderer_for


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="officestack: provision WordPress, mail, webmail and mail admin on Minikube or Docker Compose")

ConfigArg = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Stack configuration (YAML)")
BackendOpt = typer.Option(None, "--backend", help="Override the configured backend: kubernetes or compose")


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _load(config: Path, backend: Optional[str]) -> StackConfig:
    try:
        cfg = load_config(config)
        if backend:
            cfg = parse_config({**cfg.model_dump(), "backend": backend})
        return cfg
    except ConfigurationError as e:
        typer.secho(f"configuration error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


def _build_driver(cfg: StackConfig):
    if cfg.backend == "compose":
        return ComposeDriver(project=cfg.namespace, workdir=cfg.resolved_workdir())
    return KubectlDriver(context=cfg.context)


def _bus(logger, run_id: str, log_path: Path) -> EventBus:
    observers = [
        ConsoleObserver(),
        LoggerObserver(logger),
        JsonFileObserver(log_path.with_suffix(".jsonl")),
    ]
    return EventBus(observers=observers, run_id=run_id)


@contextmanager
def _cancel_on_signals(ctx: ExecutionContext) -> Iterator[None]:
    """SIGINT/SIGTERM cancel the run; the poller notices within one interval."""

    def handler(signum, frame):
        typer.secho(f"\nreceived {signal.Signals(signum).name}, cancelling ...", fg=typer.colors.YELLOW, err=True)
        ctx.cancel()

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, h in previous.items():
            signal.signal(sig, h)


def _print_report(report: RunReport) -> None:
    typer.echo("")
    typer.echo(f"summary: {report.summary()}")

    for warning in report.warnings:
        typer.secho(f"warning: {warning}", fg=typer.colors.YELLOW)

    if report.success:
        typer.secho("provisioning complete", fg=typer.colors.GREEN)
        for label, url in report.urls.items():
            typer.echo(f"  {label:<20} {url}")
        return

    error = report.error
    typer.secho(f"failed step: {report.failed_step}", fg=typer.colors.RED, err=True)
    if error is not None:
        typer.secho(f"reason: {error.kind}: {error}", fg=typer.colors.RED, err=True)
    for name, text in report.diagnostics.items():
        typer.echo(f"\n--- diagnostics: {name} ---", err=True)
        typer.echo(text, err=True)


def _run_locked(cfg: StackConfig, ctx: ExecutionContext, action) -> RunReport:
    try:
        with target_lock(cfg.namespace), _cancel_on_signals(ctx):
            return action()
    except LockHeldError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    finally:
        ctx.close()


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def run(
    config: Path = ConfigArg,
    backend: Optional[str] = BackendOpt,
    no_cleanup: bool = typer.Option(False, "--no-cleanup", help="Keep existing resources instead of starting clean"),
    skip_host: bool = typer.Option(False, "--skip-host", help="Do not install tools or start the runtime"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Cancel the run after this many seconds"),
    debug: bool = typer.Option(False, "--debug"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir"),
):
    """Provision the whole stack and verify every service."""
    logger, run_id, log_path = init_logging(base_dir=log_dir, verbose=debug)
    cfg = _load(config, backend)

    ctx = ExecutionContext()
    ctx.deadline(timeout)

    provisioner = Provisioner(
        _build_driver(cfg),
        host=None if skip_host else HostSetup(),
        runtime=None if skip_host else runtime_for(cfg.backend, cfg.runtime),
        bus=_bus(logger, run_id, log_path),
        ctx=ctx,
        cleanup=not no_cleanup,
    )

    report = _run_locked(cfg, ctx, lambda: provisioner.run(cfg))
    _print_report(report)
    typer.echo(f"log: {log_path}")
    raise typer.Exit(report.exit_code)


@app.command()
def reset(
    config: Path = ConfigArg,
    backend: Optional[str] = BackendOpt,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    debug: bool = typer.Option(False, "--debug"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir"),
):
    """Delete everything the stack created (cleanup only)."""
    cfg = _load(config, backend)
    if not yes:
        typer.confirm(
            f"Remove every {cfg.backend} resource of '{cfg.namespace}', including volumes?",
            abort=True,
        )

    logger, run_id, log_path = init_logging(base_dir=log_dir, verbose=debug)
    ctx = ExecutionContext()
    provisioner = Provisioner(_build_driver(cfg), bus=_bus(logger, run_id, log_path), ctx=ctx)

    report = _run_locked(cfg, ctx, lambda: provisioner.reset(cfg))
    _print_report(report)
    raise typer.Exit(report.exit_code)


@app.command()
def render(
    config: Path = ConfigArg,
    backend: Optional[str] = BackendOpt,
    workload: Optional[str] = typer.Option(None, "--workload", "-w", help="Render a single workload"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Write <workload>.yaml files here"),
):
    """Render manifests without touching the environment."""
    cfg = _load(config, backend)
    renderer = renderer_for(cfg.backend)
    names = [workload] if workload else renderer.workload_names(cfg)

    try:
        manifests = [renderer.render(name, cfg) for name in names]
    except ProvisionError as e:
        typer.secho(f"{e.kind}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    if output_dir:
        output_dir.mkdir(parents=True, exist_ok=True)
        for manifest in manifests:
            path = output_dir / f"{manifest.workload}.yaml"
            path.write_text(manifest.to_yaml())
            typer.echo(f"wrote {path}")
        return

    for manifest in manifests:
        typer.echo(f"# --- {manifest.workload} ---")
        typer.echo(manifest.to_yaml())


@app.command()
def plan(
    config: Path = ConfigArg,
    backend: Optional[str] = BackendOpt,
    no_cleanup: bool = typer.Option(False, "--no-cleanup"),
    skip_host: bool = typer.Option(False, "--skip-host"),
):
    """Print the ordered steps a run would execute."""
    cfg = _load(config, backend)
    provisioner = Provisioner(
        None,
        host=None if skip_host else HostSetup(),
        runtime=None if skip_host else runtime_for(cfg.backend, cfg.runtime),
        cleanup=not no_cleanup,
    )
    try:
        steps = provisioner.plan(cfg)
    except ConfigurationError as e:
        typer.secho(f"configuration error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    for i, step in enumerate(steps, start=1):
        typer.echo(f"{i:>2}. {step.label}")


if __name__ == "__main__":
    app()

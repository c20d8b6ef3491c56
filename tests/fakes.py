"""Shared fakes for the test suite (importable as `fakes`, tests/ is on pythonpath)."""

from __future__ import annotations

import copy
from collections import Counter
from typing import Dict, List, Optional, Sequence

from officestack.errors import PreflightError
from officestack.utils.retry import BackoffPolicy
from officestack.workloads.models import Manifest, ReadinessState, Workload, WorkloadRef


def _merge(base: dict, override: dict) -> dict:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _merge(base[k], v)
        else:
            base[k] = v
    return base


BASE_CONFIG = {
    "backend": "kubernetes",
    "namespace": "office",
    "domains": {
        "primary": "example.com",
        "mail": "mail.example.com",
        "webmail": "webmail.example.com",
        "admin": "admin.example.com",
    },
    "database": {"root_password": "rootpw", "user": "office", "password": "officepw"},
    "sites": {"primary": {"db_name": "wp1", "db_user": "wp1", "db_password": "wp1pw"}},
    "mail": {"postmaster": "postmaster@example.com"},
    "webmail": {"db_user": "roundcube", "db_password": "rcpw", "des_key": "0123456789abcdef01234567"},
    "admin": {
        "admin_user": "admin",
        "admin_password": "adminpw",
        "db_user": "postfixadmin",
        "db_password": "pfapw",
    },
    "policies": {
        "readiness": {"max_attempts": 3, "interval": 0},
        "install": {"max_attempts": 2, "interval": 0},
        "apply": {"max_attempts": 3, "interval": 0},
        "overrides": {},
    },
}


def config_data(**overrides) -> dict:
    """A valid raw configuration; keyword overrides are deep-merged."""
    return _merge(copy.deepcopy(BASE_CONFIG), overrides)


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)

    def kinds(self) -> List[str]:
        return [e.__class__.__name__ for e in self.events]


class DummyCP:
    def __init__(self, rc=0, out="", err=""):
        self.returncode = rc
        self.stdout = out
        self.stderr = err


class FakeDriver:
    """
    Records every call as (method, target).

    ready_after: ref name -> number of status polls before READY
                 (None = never ready; missing = ready on first poll)
    apply_errors / delete_errors: exceptions raised in order, per workload / selector kind
    """

    def __init__(
        self,
        *,
        ready_after: Optional[Dict[str, Optional[int]]] = None,
        apply_errors: Optional[Dict[str, List[Exception]]] = None,
        delete_errors: Optional[Dict[str, List[Exception]]] = None,
        probe_ok: bool = True,
    ):
        self.calls = []
        self.ready_after = dict(ready_after or {})
        self.apply_errors = {k: list(v) for k, v in (apply_errors or {}).items()}
        self.delete_errors = {k: list(v) for k, v in (delete_errors or {}).items()}
        self.probe_ok = probe_ok
        self.polls = Counter()

    def apply(self, manifest: Manifest) -> None:
        self.calls.append(("apply", manifest.workload))
        errors = self.apply_errors.get(manifest.workload)
        if errors:
            raise errors.pop(0)

    def delete(self, selector) -> None:
        self.calls.append(("delete", str(selector)))
        errors = self.delete_errors.get(selector.kind)
        if errors:
            raise errors.pop(0)

    def status(self, ref: WorkloadRef) -> ReadinessState:
        self.calls.append(("status", ref.name))
        self.polls[ref.name] += 1
        need = self.ready_after.get(ref.name, 1)
        if need is None or self.polls[ref.name] < need:
            return ReadinessState.PENDING
        return ReadinessState.READY

    def diagnostics(self, ref: WorkloadRef) -> str:
        self.calls.append(("diagnostics", ref.name))
        return f"describe {ref.name}"

    def probe(self, ref: WorkloadRef, argv: Sequence[str]) -> bool:
        self.calls.append(("probe", ref.name))
        return self.probe_ok

    def applied(self) -> List[str]:
        return [target for method, target in self.calls if method == "apply"]

    def methods(self) -> List[str]:
        return [method for method, _ in self.calls]


def simple_workload(name: str, deps=(), *, max_attempts: int = 3, idempotent: bool = False, readiness=None) -> Workload:
    def render(cfg):
        return Manifest(
            workload=name,
            backend="kubernetes",
            objects=({"apiVersion": "apps/v1", "kind": "Deployment", "metadata": {"name": name}},),
        )

    return Workload(
        name=name,
        ref=WorkloadRef(kind="Deployment", name=name, namespace="office"),
        render=render,
        dependencies=tuple(deps),
        readiness=readiness,
        policy=BackoffPolicy(max_attempts=max_attempts, interval=0),
        idempotent=idempotent,
    )


class FakeHost:
    def __init__(self, installed=(), install_errors=None, busy_ports=()):
        self.installed = set(installed)
        self.install_errors = {k: list(v) for k, v in (install_errors or {}).items()}
        self.busy_ports = set(busy_ports)
        self.calls = []

    def is_installed(self, tool) -> bool:
        self.calls.append(("is_installed", tool.name))
        return tool.name in self.installed

    def install(self, tool) -> None:
        self.calls.append(("install", tool.name))
        errors = self.install_errors.get(tool.name)
        if errors:
            raise errors.pop(0) if len(errors) > 1 else errors[0]
        self.installed.add(tool.name)

    def check_ports(self, ports):
        self.calls.append(("check_ports", tuple(ports)))
        busy = sorted(set(ports) & self.busy_ports)
        if busy:
            raise PreflightError(f"port(s) {busy} already in use")
        return sorted(ports)


class FakeRuntime:
    name = "minikube"

    def __init__(self, running=False, start_errors=()):
        self.running = running
        self.start_errors = list(start_errors)
        self.calls = []

    def is_running(self) -> bool:
        self.calls.append("is_running")
        return self.running

    def start(self) -> None:
        self.calls.append("start")
        if self.start_errors:
            raise self.start_errors.pop(0)
        self.running = True

# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/drivers/kubectl.py

from __future__ import annotations

import json
import logging
import subprocess
import threading
from typing import Any, Dict, List, Optional, Sequence

from officestack.errors import DriverError
from officestack.utils.runner import CommandRunner
from officestack.workloads.models import Manifest, ReadinessState, Selector, WorkloadRef

from .interface import failure, is_not_found

log = logging.getLogger("officestack")


def deployment_state(obj: Dict[str, Any]) -> ReadinessState:
    """Map a Deployment object to a readiness state (rollout status semantics)."""
    spec = obj.get("spec") or {}
    status = obj.get("status") or {}
    metadata = obj.get("metadata") or {}

    for cond in status.get("conditions") or []:
        if (
            cond.get("type") == "Progressing"
            and cond.get("status") == "False"
            and cond.get("reason") == "ProgressDeadlineExceeded"
        ):
            return ReadinessState.FAILED
        if cond.get("type") == "ReplicaFailure" and cond.get("status") == "True":
            return ReadinessState.FAILED

    generation = metadata.get("generation") or 0
    observed = status.get("observedGeneration") or 0
    if observed < generation:
        return ReadinessState.PENDING

    desired = spec.get("replicas", 1)
    available = status.get("availableReplicas") or 0
    updated = status.get("updatedReplicas") or 0
    if available >= desired and updated >= desired:
        return ReadinessState.READY
    return ReadinessState.PENDING


class KubectlDriver:
    """
    Driver backed by the local `kubectl` binary.
    All commands are serialised through one lock.
    """

    def __init__(
        self,
        *,
        context: Optional[str] = None,
        kubeconfig: Optional[str] = None,
        runner: Optional[CommandRunner] = None,
    ):
        self.context = context
        self.kubeconfig = kubeconfig
        self.runner = runner or CommandRunner(label="kubectl")
        self._lock = threading.Lock()

    # ------------------------- internal helpers -------------------------

    def _base(self) -> List[str]:
        cmd = ["kubectl"]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        if self.context:
            cmd += ["--context", self.context]
        return cmd

    def _run(self, args: Sequence[str], *, input: Optional[str] = None) -> subprocess.CompletedProcess:
        with self._lock:
            return self.runner.run(self._base() + list(args), input=input)

    @staticmethod
    def _ns(namespace: Optional[str]) -> List[str]:
        return ["-n", namespace] if namespace else []

    def _get_json(self, kind: str, name: str, namespace: Optional[str]) -> Optional[Dict[str, Any]]:
        cp = self._run(["get", kind, name, "-o", "json"] + self._ns(namespace))
        if cp.returncode != 0:
            out = cp.stderr or cp.stdout
            if is_not_found(out):
                return None
            raise failure(f"kubectl get {kind}/{name} failed", out)
        try:
            return json.loads(cp.stdout or "{}")
        except json.JSONDecodeError as e:
            raise DriverError(f"kubectl get {kind}/{name} returned invalid JSON: {e}") from e

    # ------------------------- Driver methods -------------------------

    def apply(self, manifest: Manifest) -> None:
        if manifest.is_empty():
            log.debug("[kubectl] nothing to apply for %s", manifest.workload)
            return

        cp = self._run(["apply", "-f", "-"], input=manifest.to_yaml())
        if cp.returncode != 0:
            raise failure(f"kubectl apply failed for {manifest.workload}", cp.stderr or cp.stdout, apply=True)

        for obj in manifest.objects:
            kind = obj.get("kind", "<unknown>")
            name = obj.get("metadata", {}).get("name", "<unknown>")
            log.info("[kubectl] applied %s/%s", kind, name)

    def delete(self, selector: Selector) -> None:
        args = ["delete", selector.kind]
        args += [selector.name] if selector.name else ["--all"]
        args += self._ns(selector.namespace)
        args.append("--ignore-not-found=true")

        cp = self._run(args)
        if cp.returncode != 0:
            out = cp.stderr or cp.stdout
            if is_not_found(out):
                log.debug("[kubectl] %s already absent", selector)
                return
            raise failure(f"kubectl delete {selector} failed", out)

    def status(self, ref: WorkloadRef) -> ReadinessState:
        kind = ref.kind.lower()
        obj = self._get_json(kind, ref.name, ref.namespace)
        if obj is None:
            return ReadinessState.PENDING

        if kind == "deployment":
            return deployment_state(obj)
        if kind == "namespace":
            phase = (obj.get("status") or {}).get("phase")
            return ReadinessState.READY if phase == "Active" else ReadinessState.PENDING
        if kind in ("persistentvolumeclaim", "pvc"):
            phase = (obj.get("status") or {}).get("phase")
            if phase == "Bound":
                return ReadinessState.READY
            if phase == "Lost":
                return ReadinessState.FAILED
            return ReadinessState.PENDING
        return ReadinessState.READY

    def diagnostics(self, ref: WorkloadRef) -> str:
        """describe/log dump for a failed workload. Never raises."""
        ns = self._ns(ref.namespace)
        commands = [
            ["describe", ref.kind.lower(), ref.name] + ns,
            ["describe", "pods", "-l", f"app={ref.name}"] + ns,
            ["logs", "-l", f"app={ref.name}", "--tail=100", "--all-containers=true"] + ns,
            ["get", "endpoints", ref.name] + ns,
        ]
        sections = []
        for args in commands:
            try:
                cp = self._run(args)
                body = (cp.stdout or "") + (cp.stderr or "")
            except Exception as e:
                body = f"<failed: {e}>"
            sections.append(f"$ kubectl {' '.join(args)}\n{body.rstrip()}")
        return "\n\n".join(sections)

    def probe(self, ref: WorkloadRef, argv: Sequence[str]) -> bool:
        args = ["exec", f"deploy/{ref.name}"] + self._ns(ref.namespace) + ["--"] + list(argv)
        cp = self._run(args)
        if cp.returncode != 0:
            log.debug("[kubectl] probe of %s failed: %s", ref, (cp.stderr or cp.stdout).strip())
        return cp.returncode == 0

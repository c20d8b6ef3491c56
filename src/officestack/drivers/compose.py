# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/drivers/compose.py

from __future__ import annotations

import json
import logging
import subprocess
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from officestack.errors import DriverError
from officestack.utils.runner import CommandRunner
from officestack.workloads.models import Manifest, ReadinessState, Selector, WorkloadRef

from .interface import failure, is_not_found

log = logging.getLogger("officestack")


def parse_ps(output: str) -> List[Dict[str, Any]]:
    """
    `docker compose ps --format json` prints a JSON array on older releases
    and one JSON object per line on newer ones. Accept both.
    """
    text = (output or "").strip()
    if not text:
        return []
    try:
        if text.startswith("["):
            return list(json.loads(text))
        return [json.loads(line) for line in text.splitlines() if line.strip()]
    except json.JSONDecodeError as e:
        raise DriverError(f"docker compose ps returned invalid JSON: {e}") from e


def container_state(entry: Dict[str, Any]) -> ReadinessState:
    state = str(entry.get("State", "")).lower()
    health = str(entry.get("Health", "")).lower()

    if state == "running":
        if health in ("", "healthy"):
            return ReadinessState.READY
        if health == "unhealthy":
            return ReadinessState.FAILED
        return ReadinessState.PENDING
    if state in ("exited", "dead"):
        return ReadinessState.FAILED
    return ReadinessState.PENDING


class ComposeDriver:
    """
    Driver backed by `docker compose`. Workload fragments are merged into a
    single compose file under the working directory, one project per stack.
    """

    def __init__(
        self,
        *,
        project: str,
        workdir: Path,
        runner: Optional[CommandRunner] = None,
        compose_cmd: Sequence[str] = ("docker", "compose"),
    ):
        self.project = project
        self.workdir = Path(workdir)
        self.compose_file = self.workdir / "docker-compose.yml"
        self.runner = runner or CommandRunner(label="compose")
        self.compose_cmd = list(compose_cmd)
        self._lock = threading.Lock()

    # ------------------------- internal helpers -------------------------

    def _base(self) -> List[str]:
        return self.compose_cmd + ["-p", self.project, "-f", str(self.compose_file)]

    def _run(self, args: Sequence[str]) -> subprocess.CompletedProcess:
        with self._lock:
            return self.runner.run(self._base() + list(args), cwd=str(self.workdir))

    def _load(self) -> Dict[str, Any]:
        if not self.compose_file.exists():
            return {}
        return yaml.safe_load(self.compose_file.read_text()) or {}

    def _save(self, document: Dict[str, Any]) -> None:
        self.workdir.mkdir(parents=True, exist_ok=True)
        self.compose_file.write_text(yaml.safe_dump(document, sort_keys=False))

    @staticmethod
    def _merge(base: Dict[str, Any], fragment: Dict[str, Any]) -> Dict[str, Any]:
        for section, entries in fragment.items():
            if isinstance(entries, dict):
                merged = dict(base.get(section) or {})
                merged.update(entries)
                base[section] = merged
            else:
                base[section] = entries
        return base

    # ------------------------- Driver methods -------------------------

    def apply(self, manifest: Manifest) -> None:
        services = manifest.services()
        if not services:
            log.debug("[compose] nothing to apply for %s", manifest.workload)
            return

        self._save(self._merge(self._load(), manifest.document or {}))

        cp = self._run(["up", "-d"] + services)
        if cp.returncode != 0:
            raise failure(f"docker compose up failed for {manifest.workload}", cp.stderr or cp.stdout, apply=True)
        log.info("[compose] started %s", ", ".join(services))

    def delete(self, selector: Selector) -> None:
        if not self.compose_file.exists():
            log.debug("[compose] no compose file at %s, %s already absent", self.compose_file, selector)
            return

        if selector.kind == "project":
            args = ["down", "--volumes", "--remove-orphans"]
        else:
            if not selector.name:
                raise DriverError(f"compose delete needs a service name: {selector}")
            args = ["rm", "--stop", "--force", "-v", selector.name]

        cp = self._run(args)
        if cp.returncode != 0:
            out = cp.stderr or cp.stdout
            if not is_not_found(out):
                raise failure(f"docker compose {args[0]} failed", out)
            log.debug("[compose] %s already absent", selector)

        if selector.kind == "project":
            self.compose_file.unlink(missing_ok=True)
        else:
            document = self._load()
            (document.get("services") or {}).pop(selector.name, None)
            self._save(document)

    def status(self, ref: WorkloadRef) -> ReadinessState:
        if not self.compose_file.exists():
            return ReadinessState.PENDING

        cp = self._run(["ps", "--all", "--format", "json", ref.name])
        if cp.returncode != 0:
            out = cp.stderr or cp.stdout
            if is_not_found(out):
                return ReadinessState.PENDING
            raise failure(f"docker compose ps {ref.name} failed", out)

        states = [container_state(e) for e in parse_ps(cp.stdout)]
        if not states:
            return ReadinessState.PENDING
        if ReadinessState.FAILED in states:
            return ReadinessState.FAILED
        if all(s == ReadinessState.READY for s in states):
            return ReadinessState.READY
        return ReadinessState.PENDING

    def diagnostics(self, ref: WorkloadRef) -> str:
        sections = []
        for args in (["ps", "--all"], ["logs", "--no-color", "--tail", "100", ref.name]):
            try:
                cp = self._run(args)
                body = (cp.stdout or "") + (cp.stderr or "")
            except Exception as e:
                body = f"<failed: {e}>"
            sections.append(f"$ docker compose {' '.join(args)}\n{body.rstrip()}")
        return "\n\n".join(sections)

    def probe(self, ref: WorkloadRef, argv: Sequence[str]) -> bool:
        cp = self._run(["exec", "-T", ref.name] + list(argv))
        if cp.returncode != 0:
            log.debug("[compose] probe of %s failed: %s", ref.name, (cp.stderr or cp.stdout).strip())
        return cp.returncode == 0

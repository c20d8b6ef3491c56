# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/host/runtime.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Protocol

from officestack.config.models import RuntimeSettings
from officestack.drivers.interface import is_transient
from officestack.errors import RuntimeStartError, TransientError
from officestack.utils.runner import CommandRunner

log = logging.getLogger("officestack")


class ContainerRuntime(Protocol):
    name: str

    def is_running(self) -> bool: ...

    def start(self) -> None: ...


@dataclass
class MinikubeRuntime:
    """
    Local single-node cluster. A failed start is recovered once with
    stop + delete + start; a second failure is fatal.
    """

    settings: RuntimeSettings = field(default_factory=RuntimeSettings)
    runner: CommandRunner = field(default_factory=lambda: CommandRunner(label="minikube", timeout=1800))
    name: str = "minikube"

    def _start_cmd(self) -> List[str]:
        return [
            "minikube",
            "start",
            f"--driver={self.settings.driver}",
            f"--cpus={self.settings.cpus}",
            f"--memory={self.settings.memory_mb}",
        ]

    def is_running(self) -> bool:
        return self.runner.run(["minikube", "status"]).returncode == 0

    def start(self) -> None:
        if self.is_running():
            log.info("[minikube] already running")
            return

        log.info("[minikube] starting (driver=%s cpus=%s memory=%sMiB)",
                 self.settings.driver, self.settings.cpus, self.settings.memory_mb)
        cp = self.runner.run(self._start_cmd())
        if cp.returncode == 0:
            log.info("[minikube] started")
            return

        first = (cp.stderr or cp.stdout or "").strip()
        logs = self.runner.run(["minikube", "logs"])
        log.error("[minikube] start failed: %s", first)
        log.debug("[minikube] logs:\n%s", (logs.stdout or logs.stderr or "").rstrip())

        log.warning("[minikube] recovering: stop, delete, start")
        self.runner.run(["minikube", "stop"])
        self.runner.run(["minikube", "delete"])
        cp = self.runner.run(self._start_cmd())
        if cp.returncode != 0:
            out = (cp.stderr or cp.stdout or "").strip()
            raise RuntimeStartError(f"minikube failed to start after recovery: {out or first}")
        log.info("[minikube] started after recovery")


@dataclass
class DockerRuntime:
    """The docker daemon, for the compose backend."""

    runner: CommandRunner = field(default_factory=lambda: CommandRunner(label="docker"))
    name: str = "docker"

    def is_running(self) -> bool:
        return self.runner.run(["docker", "info"]).returncode == 0

    def start(self) -> None:
        if self.is_running():
            log.info("[docker] daemon running")
            return

        for cmd in (["sudo", "systemctl", "start", "docker"], ["sudo", "systemctl", "enable", "docker"]):
            cp = self.runner.run(cmd)
            if cp.returncode != 0:
                out = (cp.stderr or cp.stdout or "").strip()
                if is_transient(out):
                    raise TransientError(f"`{' '.join(cmd)}` failed: {out}")
                raise RuntimeStartError(f"`{' '.join(cmd)}` failed: {out}")

        if not self.is_running():
            raise RuntimeStartError("docker daemon still not reachable after start")
        log.info("[docker] daemon started")


def runtime_for(backend: str, settings: RuntimeSettings) -> ContainerRuntime:
    if backend == "compose":
        return DockerRuntime()
    return MinikubeRuntime(settings=settings)

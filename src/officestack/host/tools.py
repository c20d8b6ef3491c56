# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/host/tools.py

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from officestack.config.models import StackConfig
from officestack.drivers.interface import is_transient
from officestack.errors import ToolInstallError, TransientError
from officestack.host.preflight import check_ports_free
from officestack.utils.runner import CommandRunner

log = logging.getLogger("officestack")

Command = Tuple[str, ...]


@dataclass(frozen=True)
class ToolSpec:
    """
    A host prerequisite. Installed when `binary` is not on PATH, or when
    `check` is given and exits non-zero.
    """

    name: str
    binary: str
    install_commands: Tuple[Command, ...] = ()
    check: Optional[Command] = None


def _apt(*packages: str) -> Tuple[Command, ...]:
    return (
        ("sudo", "apt-get", "update"),
        ("sudo", "apt-get", "install", "-y", *packages),
    )


def _download(url: str, binary: str) -> Tuple[Command, ...]:
    target = str(Path(tempfile.gettempdir()) / binary)
    return (
        ("curl", "-fsSL", "-o", target, url),
        ("sudo", "install", "-o", "root", "-g", "root", "-m", "0755", target, f"/usr/local/bin/{binary}"),
        ("rm", "-f", target),
    )


def default_tools(config: StackConfig) -> List[ToolSpec]:
    docker = ToolSpec(
        name="docker",
        binary="docker",
        install_commands=_apt("docker.io") + (("sudo", "systemctl", "enable", "--now", "docker"),),
    )
    if config.backend == "compose":
        return [
            docker,
            ToolSpec(
                name="docker-compose",
                binary="docker",
                install_commands=_apt("docker-compose-v2"),
                check=("docker", "compose", "version"),
            ),
        ]
    return [
        docker,
        ToolSpec(name="kubectl", binary="kubectl", install_commands=_download(config.tools.kubectl_url, "kubectl")),
        ToolSpec(name="minikube", binary="minikube", install_commands=_download(config.tools.minikube_url, "minikube")),
    ]


@dataclass
class HostSetup:
    """Installs host tooling. Everything goes through the runner so it can be faked."""

    runner: CommandRunner = field(default_factory=lambda: CommandRunner(label="host"))

    def is_installed(self, tool: ToolSpec) -> bool:
        if shutil.which(tool.binary) is None:
            return False
        if tool.check:
            return self.runner.run(tool.check).returncode == 0
        return True

    def check_ports(self, ports) -> List[int]:
        return check_ports_free(ports)

    def install(self, tool: ToolSpec) -> None:
        log.info("[host] installing %s ...", tool.name)
        for cmd in tool.install_commands:
            cp = self.runner.run(cmd)
            if cp.returncode == 0:
                continue
            out = (cp.stderr or cp.stdout or "").strip()
            message = f"installing {tool.name} failed at `{' '.join(cmd)}` (exit {cp.returncode}): {out}"
            if is_transient(out):
                raise TransientError(message)
            raise ToolInstallError(message)
        log.info("[host] %s installed", tool.name)

# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/utils/runner.py

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Sequence

log = logging.getLogger("officestack")


@dataclass
class CommandRunner:
    """
    Thin subprocess wrapper shared by drivers and host setup.
    Testable by monkeypatching subprocess.run.
    """

    label: str = "cmd"
    timeout: Optional[float] = 900
    env: Optional[dict] = None

    def run(
        self,
        cmd: Sequence[str],
        *,
        input: Optional[str] = None,
        cwd: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        argv = [str(c) for c in cmd]
        log.debug("[%s] $ %s", self.label, " ".join(argv))

        start = time.time()
        try:
            result = subprocess.run(
                argv,
                input=input,
                capture_output=True,
                text=True,
                check=False,
                cwd=cwd,
                env=self.env,
                timeout=timeout or self.timeout,
            )
        except FileNotFoundError:
            # binary missing: report like a shell would
            log.debug("[%s] command not found: %s", self.label, argv[0])
            return subprocess.CompletedProcess(argv, 127, "", f"{argv[0]}: command not found")
        except subprocess.TimeoutExpired:
            log.debug("[%s] timed out after %ss", self.label, timeout or self.timeout)
            return subprocess.CompletedProcess(argv, 124, "", f"{argv[0]}: i/o timeout")

        duration = time.time() - start
        if result.stdout:
            log.debug("[%s][stdout]\n%s", self.label, result.stdout.rstrip())
        if result.stderr:
            log.debug("[%s][stderr]\n%s", self.label, result.stderr.rstrip())
        log.debug("[%s][exit %s] (%.2fs)", self.label, result.returncode, duration)
        return result

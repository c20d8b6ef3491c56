# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/errors.py

from __future__ import annotations

from typing import Optional


class ProvisionError(RuntimeError):
    """Base class for every failure raised while provisioning a stack."""

    fatal: bool = True

    def __init__(self, message: str, *, workload: Optional[str] = None):
        super().__init__(message)
        self.workload = workload

    @property
    def kind(self) -> str:
        return self.__class__.__name__


class ConfigurationError(ProvisionError):
    """Missing or invalid setting. Raised before any side effect."""


class ToolInstallError(ProvisionError):
    """A prerequisite tool could not be installed."""


class RuntimeStartError(ProvisionError):
    """The container runtime did not come up, even after recovery."""


class PreflightError(ProvisionError):
    """Host precondition not met (e.g. a required port is in use)."""


class DriverError(ProvisionError):
    """A driver command failed."""


class ApplyError(DriverError):
    """The driver rejected a manifest, or no manifest could be produced."""


class TransientError(DriverError):
    """Connection-level failure; the operation may succeed when retried."""


class ReadinessTimeout(ProvisionError):
    def __init__(
        self,
        workload: str,
        *,
        attempts: int,
        last_state: Optional[str] = None,
        last_error: Optional[str] = None,
    ):
        detail = f"last state={last_state}"
        if last_error:
            detail += f", last error={last_error}"
        super().__init__(
            f"workload '{workload}' not ready after {attempts} attempts ({detail})",
            workload=workload,
        )
        self.attempts = attempts
        self.last_state = last_state
        self.last_error = last_error


class CleanupError(ProvisionError):
    """Best-effort cleanup failed. Logged as a warning, never fatal."""

    fatal = False


class ProvisionCancelled(ProvisionError):
    """The run was cancelled (interrupt or deadline)."""


class LockHeldError(ProvisionError):
    """Another run already owns the target environment."""

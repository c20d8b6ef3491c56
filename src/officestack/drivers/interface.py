# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import re
from typing import Protocol, Sequence

from officestack.errors import ApplyError, DriverError, TransientError
from officestack.workloads.models import Manifest, ReadinessState, Selector, WorkloadRef


class Driver(Protocol):
    """
    Applies, deletes and queries the target environment.
    Success returns None; failures raise ApplyError / TransientError / DriverError.
    """

    def apply(self, manifest: Manifest) -> None: ...

    def delete(self, selector: Selector) -> None: ...

    def status(self, ref: WorkloadRef) -> ReadinessState: ...

    def diagnostics(self, ref: WorkloadRef) -> str: ...

    def probe(self, ref: WorkloadRef, argv: Sequence[str]) -> bool: ...


_TRANSIENT = re.compile(
    r"connection refused"
    r"|i/o timeout"
    r"|tls handshake timeout"
    r"|unable to connect to the server"
    r"|cannot connect to the docker daemon"
    r"|connection reset by peer"
    r"|temporary failure in name resolution"
    r"|temporary failure resolving"
    r"|could not resolve host"
    r"|no such host"
    r"|docker\.sock: connect"
    r"|context deadline exceeded",
    re.IGNORECASE,
)

# only the forms kubectl and docker compose print for a missing object
_NOT_FOUND = re.compile(
    r"Error from server \(NotFound\)"
    r"|no such service"
    r"|no such container"
    r"|no configuration file provided",
    re.IGNORECASE,
)


def is_transient(output: str) -> bool:
    return bool(_TRANSIENT.search(output or ""))


def is_not_found(output: str) -> bool:
    """A missing object. Connection failures never count, whatever they print."""
    if is_transient(output):
        return False
    return bool(_NOT_FOUND.search(output or ""))


def failure(message: str, output: str, *, apply: bool = False) -> DriverError:
    """Build the right error for a failed command from its output."""
    text = f"{message}: {(output or '').strip()}"
    if is_transient(output):
        return TransientError(text)
    if apply:
        return ApplyError(text)
    return DriverError(text)

# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/host/preflight.py

from __future__ import annotations

import errno
import logging
import socket
from typing import Iterable, List

from officestack.errors import PreflightError

log = logging.getLogger("officestack")


def port_in_use(port: int, host: str = "0.0.0.0") -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                return True
            # EACCES on privileged ports: cannot tell, let the runtime decide
            log.debug("[preflight] cannot probe port %s: %s", port, e)
    return False


def check_ports_free(ports: Iterable[int], host: str = "0.0.0.0") -> List[int]:
    """Raise PreflightError listing every busy port; return the checked ports otherwise."""
    checked = sorted(set(int(p) for p in ports))
    busy = [p for p in checked if port_in_use(p, host)]
    if busy:
        raise PreflightError(
            f"port(s) {', '.join(str(p) for p in busy)} already in use; stop the process holding them and retry"
        )
    log.debug("[preflight] ports free: %s", checked)
    return checked

# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import fcntl
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from officestack.errors import LockHeldError


def default_lock_dir() -> Path:
    return Path.home() / ".officestack" / "locks"


@contextmanager
def target_lock(target: str, *, lock_dir: Optional[Path] = None) -> Iterator[Path]:
    """
    Advisory, non-blocking lock on one target environment (namespace or
    compose project). Two runs against the same target must not overlap.
    """
    lock_dir = lock_dir or default_lock_dir()
    lock_dir.mkdir(parents=True, exist_ok=True)
    path = lock_dir / f"{target}.lock"

    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            raise LockHeldError(
                f"another run is already provisioning '{target}' (lock: {path})"
            ) from exc
        os.ftruncate(fd, 0)
        os.write(fd, str(os.getpid()).encode())
        try:
            yield path
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)

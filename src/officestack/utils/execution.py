# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ExecutionContext:
    """
    controls how a provisioning run is executed

    Carries the cancellation signal shared by the provisioner, the
    readiness poller and the retry helper. Every blocking wait goes
    through ``sleep`` so that a cancel is observed within one interval.
    """

    cancel_event: threading.Event = field(default_factory=threading.Event)
    _timers: list = field(default_factory=list, repr=False, compare=False)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def sleep(self, seconds: float) -> bool:
        """Wait up to *seconds*. Returns True if the run was cancelled."""
        if seconds <= 0:
            return self.cancelled
        return self.cancel_event.wait(seconds)

    def deadline(self, seconds: Optional[float]) -> None:
        """Cancel the context automatically after *seconds*."""
        if not seconds or seconds <= 0:
            return
        timer = threading.Timer(seconds, self.cancel)
        timer.daemon = True
        timer.start()
        self._timers.append(timer)

    def close(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

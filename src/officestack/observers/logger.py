# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/observers/logger.py

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from .events import BaseEvent, DiagnosticsCollected
from .interface import Observer

_RUN_FIELDS = ("ts", "run_id", "env", "context")


def _value(v: Any) -> str:
    if isinstance(v, (list, tuple)):
        return ",".join(str(x) for x in v)
    text = str(v)
    return repr(text) if not text or " " in text else text


def _pairs(fields: Dict[str, Any]) -> str:
    return " ".join(f"{k}={_value(v)}" for k, v in fields.items())


class LoggerObserver(Observer):
    """
    Writes events into the run log at DEBUG as `[event] Type key=value ...`.

    run_id / backend / target are written once, and again only when the
    bus is rebound, instead of on every line.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self._bound: Optional[Tuple[str, str, Optional[str]]] = None

    def notify(self, event: BaseEvent) -> None:
        bound = (event.run_id, event.env, event.context)
        if bound != self._bound:
            self._bound = bound
            self.logger.debug("[event] run_id=%s backend=%s target=%s", *bound)

        etype = event.__class__.__name__
        fields = {k: v for k, v in event.dict().items() if k not in _RUN_FIELDS and v is not None}

        if isinstance(event, DiagnosticsCollected):
            # multi-line dump goes below the record line
            output = fields.pop("output", "")
            self.logger.debug("[event] %s %s\n%s", etype, _pairs(fields), output.rstrip())
            return

        self.logger.debug("[event] %s %s", etype, _pairs(fields))

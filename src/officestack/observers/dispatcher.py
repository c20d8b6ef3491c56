# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/observers/dispatcher.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

from .events import BaseEvent, new_ctx
from .interface import Observer

log = logging.getLogger("officestack")


class EventBus:
    """
    Fans events out to observers. Carries the run context (run_id, backend,
    namespace) so emitters only pass the event-specific fields.
    """

    def __init__(self, observers: Optional[List[Observer]] = None, *, env: str = "-", context: Optional[str] = None,
                 run_id: Optional[str] = None):
        self._observers = list(observers or [])
        self.run_id = new_ctx(env, context, run_id)["run_id"]
        self.env = env
        self.context = context

    def bind(self, *, env: str, context: Optional[str]) -> None:
        self.env = env
        self.context = context

    def ctx(self) -> Dict[str, Any]:
        return new_ctx(self.env, self.context, self.run_id)

    def publish(self, event_type: Type[BaseEvent], **fields: Any) -> None:
        self.emit(event_type(**self.ctx(), **fields))

    def emit(self, event: BaseEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception as e:
                # observers must not break runs
                log.debug("[events] observer %s failed on %s: %s",
                          ob.__class__.__name__, event.__class__.__name__, e)

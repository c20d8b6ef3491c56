# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/observers/jsonfile.py

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

from .events import BaseEvent
from .interface import Observer


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return str(value)


class JsonFileObserver(Observer):
    """
    JSONL event stream next to the run log. Each line carries the event
    `type` and a `seq` number that is monotonic within the run.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._seq = 0

    def notify(self, event: BaseEvent) -> None:
        self._seq += 1
        record = {"seq": self._seq, "type": event.__class__.__name__, **event.dict()}
        line = json.dumps(record, default=_jsonable, separators=(",", ":"))
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

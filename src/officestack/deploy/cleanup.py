# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/deploy/cleanup.py
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from officestack.errors import CleanupError, DriverError
from officestack.observers.dispatcher import EventBus
from officestack.observers.events import CleanupWarning
from officestack.workloads.models import Selector

from .results import StepResult

log = logging.getLogger("officestack")


def cleanup(driver, selectors: Sequence[Selector], *, bus: Optional[EventBus] = None) -> StepResult:
    """
    Delete everything the selectors name. Absent resources are the driver's
    concern (not an error); any other failure becomes a warning.
    """
    bus = bus or EventBus()
    warnings: List[str] = []

    for selector in selectors:
        try:
            driver.delete(selector)
            log.info("[cleanup] deleted %s", selector)
        except DriverError as e:
            warning = CleanupError(f"cleanup of {selector} failed: {e}")
            log.warning("[cleanup] %s", warning)
            bus.publish(CleanupWarning, selector=str(selector), error=str(e))
            warnings.append(str(warning))

    return StepResult.done("Cleanup", data={"warnings": warnings})

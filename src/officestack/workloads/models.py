# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/workloads/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

import yaml

from officestack.utils.retry import BackoffPolicy

if TYPE_CHECKING:
    from officestack.config.models import StackConfig
    from officestack.drivers.interface import Driver


class ReadinessState(str, Enum):
    PENDING = "Pending"
    READY = "Ready"
    FAILED = "Failed"


@dataclass(frozen=True)
class WorkloadRef:
    """What the driver queries: a Deployment/Namespace in k8s, a service in compose."""

    kind: str
    name: str
    namespace: Optional[str] = None

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.kind}/{self.name}"
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True)
class Selector:
    """What the driver deletes. name=None selects every object of the kind."""

    kind: str
    name: Optional[str] = None
    namespace: Optional[str] = None

    def __str__(self) -> str:
        target = self.name or "--all"
        if self.namespace:
            return f"{self.kind} {target} -n {self.namespace}"
        return f"{self.kind} {target}"


@dataclass(frozen=True)
class Manifest:
    workload: str
    backend: str                                        # "kubernetes" | "compose"
    objects: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)   # k8s objects
    document: Optional[Dict[str, Any]] = None           # compose fragment

    def to_yaml(self) -> str:
        if self.backend == "compose":
            return yaml.safe_dump(self.document or {}, sort_keys=False)
        return yaml.safe_dump_all(list(self.objects), sort_keys=False)

    def services(self) -> List[str]:
        if not self.document:
            return []
        return list((self.document.get("services") or {}).keys())

    def is_empty(self) -> bool:
        if self.backend == "compose":
            return not self.services()
        return not self.objects


ReadinessCheck = Callable[["Driver", "Workload"], ReadinessState]


@dataclass(frozen=True)
class Workload:
    name: str
    ref: WorkloadRef
    render: Callable[["StackConfig"], Manifest]
    dependencies: Tuple[str, ...] = ()
    readiness: Optional[ReadinessCheck] = None     # None: driver.status(ref)
    policy: BackoffPolicy = field(default_factory=BackoffPolicy)
    idempotent: bool = False                       # skip apply when already Ready

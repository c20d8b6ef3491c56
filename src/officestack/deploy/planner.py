# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/deploy/planner.py
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set

from officestack.errors import ConfigurationError
from officestack.host.tools import ToolSpec
from officestack.workloads.models import Workload


class StepKind(str, Enum):
    CLEANUP = "Cleanup"
    PREFLIGHT = "Preflight"
    INSTALL_TOOL = "InstallTool"
    START_RUNTIME = "StartRuntime"
    APPLY = "Apply"
    VERIFY = "Verify"
    REPORT = "Report"


@dataclass(frozen=True)
class Step:
    kind: StepKind
    target: Optional[str] = None
    workload: Optional[Workload] = None
    tool: Optional[ToolSpec] = None

    @property
    def label(self) -> str:
        if self.target:
            return f"{self.kind.value}({self.target})"
        return self.kind.value


class UnknownDependencyError(ConfigurationError):
    pass


class CyclicDependencyError(ConfigurationError):
    pass


def _validate_dependencies(workloads: Sequence[Workload]) -> None:
    names: Set[str] = set()
    for w in workloads:
        if w.name in names:
            raise ConfigurationError(f"Workload '{w.name}' is declared twice")
        names.add(w.name)
    for w in workloads:
        for d in w.dependencies:
            if d not in names:
                raise UnknownDependencyError(
                    f"Workload '{w.name}' depends on unknown workload '{d}'", workload=w.name
                )


def order_workloads(workloads: Sequence[Workload]) -> List[Workload]:
    """
    Stable topological sort of workloads by their `dependencies`.
    - Validates that every dependency points to a declared workload.
    - Ties are broken by declaration order, so the plan is deterministic.
    """
    _validate_dependencies(workloads)

    position: Dict[str, int] = {w.name: i for i, w in enumerate(workloads)}
    by_name: Dict[str, Workload] = {w.name: w for w in workloads}
    indeg: Dict[str, int] = {w.name: len(set(w.dependencies)) for w in workloads}

    queue = deque(sorted((n for n, deg in indeg.items() if deg == 0), key=position.get))
    order: List[Workload] = []

    while queue:
        n = queue.popleft()
        order.append(by_name[n])
        for w in workloads:
            if n in w.dependencies:
                indeg[w.name] -= 1
                if indeg[w.name] == 0:
                    queue.append(w.name)
                    queue = deque(sorted(queue, key=position.get))

    if len(order) != len(workloads):
        stuck = sorted(n for n, deg in indeg.items() if deg > 0)
        raise CyclicDependencyError(f"Cyclic dependency detected among workloads: {', '.join(stuck)}")

    return order


def build_plan(
    workloads: Sequence[Workload],
    *,
    cleanup: bool = True,
    preflight: bool = False,
    tools: Sequence[ToolSpec] = (),
    runtime: Optional[str] = None,
) -> List[Step]:
    """
    Cleanup -> Preflight -> InstallTool* -> StartRuntime ->
    (Apply(X), Verify(X)) per workload in dependency order -> Report.
    """
    steps: List[Step] = []
    if cleanup:
        steps.append(Step(StepKind.CLEANUP))
    if preflight:
        steps.append(Step(StepKind.PREFLIGHT))
    for tool in tools:
        steps.append(Step(StepKind.INSTALL_TOOL, target=tool.name, tool=tool))
    if runtime:
        steps.append(Step(StepKind.START_RUNTIME, target=runtime))
    for w in order_workloads(workloads):
        steps.append(Step(StepKind.APPLY, target=w.name, workload=w))
        steps.append(Step(StepKind.VERIFY, target=w.name, workload=w))
    steps.append(Step(StepKind.REPORT))
    return steps

# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/workloads/registry.py

from __future__ import annotations

import logging
from functools import partial
from typing import Dict, List, Optional, Tuple

from officestack.config.models import StackConfig
from officestack.errors import ConfigurationError
from officestack.render.base import Renderer
from officestack.render.compose import ComposeRenderer
from officestack.render.kubernetes import KubernetesRenderer

from .models import Workload
from .readiness import accepts_query, all_of, http_ok, status_ready

log = logging.getLogger("officestack")

# workload -> upstream workloads that must be verified first
DEPENDENCIES: Dict[str, Tuple[str, ...]] = {
    "namespace": (),
    "database": ("namespace",),
    "wordpress-primary": ("database",),
    "wordpress-secondary": ("database",),
    "mail-server": ("database",),
    "webmail": ("database", "mail-server"),
    "mail-admin": ("database", "mail-server"),
}

IDEMPOTENT = {"namespace"}

# ships with the mariadb image; authenticates with its own healthcheck user,
# so no credentials end up on a command line
DB_HEALTHCHECK = ("healthcheck.sh", "--connect", "--innodb_initialized")


def renderer_for(backend: str) -> Renderer:
    if backend == "kubernetes":
        return KubernetesRenderer()
    if backend == "compose":
        return ComposeRenderer()
    raise ConfigurationError(f"unknown backend '{backend}'")


def _readiness(name: str, config: StackConfig):
    if name == "database":
        return accepts_query(DB_HEALTHCHECK)
    if name == "webmail" and config.verify_urls:
        return all_of(status_ready, http_ok(f"https://{config.domains.webmail}"))
    return status_ready


def build_workloads(config: StackConfig, renderer: Optional[Renderer] = None) -> List[Workload]:
    """
    Workload definitions for the configured backend, in declaration order.
    Dependencies on workloads the backend does not have (the namespace
    under compose) are dropped.
    """
    renderer = renderer or renderer_for(config.backend)
    names = renderer.workload_names(config)
    present = set(names)

    workloads = []
    for name in names:
        workloads.append(
            Workload(
                name=name,
                ref=renderer.ref(name, config),
                render=partial(renderer.render, name),
                dependencies=tuple(d for d in DEPENDENCIES.get(name, ()) if d in present),
                readiness=_readiness(name, config),
                policy=config.policies.for_workload(name),
                idempotent=name in IDEMPOTENT,
            )
        )

    log.debug("[workloads] %s: %s", renderer.backend, ", ".join(names))
    return workloads

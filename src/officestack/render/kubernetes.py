# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/render/kubernetes.py

from __future__ import annotations

from typing import Any, Dict, List

from officestack.config.models import Resources, StackConfig
from officestack.workloads.models import Manifest, Selector, WorkloadRef

from .base import TemplateRenderer

# workload -> Deployment (and Service) name inside the namespace
OBJECT_NAMES: Dict[str, str] = {
    "database": "mariadb",
    "wordpress-primary": "wordpress1",
    "wordpress-secondary": "wordpress2",
    "mail-server": "mailserver",
    "webmail": "roundcube",
    "mail-admin": "postfixadmin",
}


def resource_block(r: Resources) -> Dict[str, Any]:
    block: Dict[str, Any] = {"requests": {"cpu": r.cpu_request, "memory": r.memory_request}}
    limits = {}
    if r.cpu_limit:
        limits["cpu"] = r.cpu_limit
    if r.memory_limit:
        limits["memory"] = r.memory_limit
    if limits:
        block["limits"] = limits
    return block


class KubernetesRenderer(TemplateRenderer):
    backend = "kubernetes"
    templates = {
        "namespace": "namespace.yaml.j2",
        "database": "database.yaml.j2",
        "wordpress-primary": "wordpress.yaml.j2",
        "wordpress-secondary": "wordpress.yaml.j2",
        "mail-server": "mailserver.yaml.j2",
        "webmail": "webmail.yaml.j2",
        "mail-admin": "mail-admin.yaml.j2",
    }

    def ref(self, workload_name: str, config: StackConfig) -> WorkloadRef:
        if workload_name == "namespace":
            return WorkloadRef(kind="Namespace", name=config.namespace)
        return WorkloadRef(kind="Deployment", name=OBJECT_NAMES[workload_name], namespace=config.namespace)

    def cleanup_selectors(self, config: StackConfig) -> List[Selector]:
        ns = config.namespace
        return [
            Selector(kind="namespace", name=ns),
            Selector(kind="pods", namespace=ns),
            Selector(kind="services", namespace=ns),
            Selector(kind="deployments", namespace=ns),
            Selector(kind="pvc", namespace=ns),
        ]

    def workload_context(self, workload_name: str, config: StackConfig) -> Dict[str, Any]:
        ctx: Dict[str, Any] = {"app": OBJECT_NAMES.get(workload_name, workload_name)}
        ctx["db_host"] = OBJECT_NAMES["database"]

        if workload_name == "database":
            ctx["resources"] = resource_block(config.database.resources)
            ctx["init_sql"] = self.init_sql(config)
        elif workload_name in ("wordpress-primary", "wordpress-secondary"):
            ctx.update(self.site_context(workload_name, config))
            ctx["resources"] = resource_block(config.sites.resources)
        elif workload_name == "mail-server":
            ctx["resources"] = resource_block(config.mail.resources)
        elif workload_name == "webmail":
            ctx["mail_host"] = OBJECT_NAMES["mail-server"]
            ctx["resources"] = resource_block(config.webmail.resources)
        elif workload_name == "mail-admin":
            ctx["mail_host"] = OBJECT_NAMES["mail-server"]
            ctx["resources"] = resource_block(config.admin.resources)
        return ctx

    def _manifest(self, workload_name: str, docs: List[Dict[str, Any]]) -> Manifest:
        return Manifest(workload=workload_name, backend=self.backend, objects=tuple(docs))

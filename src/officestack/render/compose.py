# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/render/compose.py

from __future__ import annotations

import json
from typing import Any, Dict, List

from officestack.config.models import StackConfig
from officestack.workloads.models import Manifest, Selector, WorkloadRef

from .base import TemplateRenderer, defined

SERVICE_NAMES: Dict[str, str] = {
    "database": "db",
    "wordpress-primary": "wordpress1",
    "wordpress-secondary": "wordpress2",
    "mail-server": "mailserver",
    "webmail": "webmail",
    "mail-admin": "postfixadmin",
}


class ComposeRenderer(TemplateRenderer):
    """
    One compose fragment (services, volumes, configs) per workload.
    There is no namespace workload: the compose project is the boundary.
    """

    backend = "compose"
    templates = {
        "database": "database.yaml.j2",
        "wordpress-primary": "wordpress.yaml.j2",
        "wordpress-secondary": "wordpress.yaml.j2",
        "mail-server": "mailserver.yaml.j2",
        "webmail": "webmail.yaml.j2",
        "mail-admin": "mail-admin.yaml.j2",
    }

    @staticmethod
    def _tojson(value: Any) -> str:
        # compose interpolates $VAR in every string value
        value = defined(value)
        if isinstance(value, str):
            value = value.replace("$", "$$")
        return json.dumps(value)

    def ref(self, workload_name: str, config: StackConfig) -> WorkloadRef:
        return WorkloadRef(kind="service", name=SERVICE_NAMES[workload_name], namespace=config.namespace)

    def cleanup_selectors(self, config: StackConfig) -> List[Selector]:
        return [Selector(kind="project", name=config.namespace)]

    def workload_context(self, workload_name: str, config: StackConfig) -> Dict[str, Any]:
        ctx: Dict[str, Any] = {
            "app": SERVICE_NAMES.get(workload_name, workload_name),
            "db_host": SERVICE_NAMES["database"],
            "mail_host": SERVICE_NAMES["mail-server"],
        }
        if workload_name == "database":
            ctx["init_sql"] = self.init_sql(config)
        elif workload_name in ("wordpress-primary", "wordpress-secondary"):
            ctx.update(self.site_context(workload_name, config))
        return ctx

    def _manifest(self, workload_name: str, docs: List[Dict[str, Any]]) -> Manifest:
        document: Dict[str, Any] = {}
        for doc in docs:
            document.update(doc)
        return Manifest(workload=workload_name, backend=self.backend, document=document)

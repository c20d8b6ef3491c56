# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/render/base.py

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, Undefined

from officestack.config.models import MailPorts, StackConfig
from officestack.errors import ApplyError
from officestack.workloads.models import Manifest, Selector, WorkloadRef

log = logging.getLogger("officestack")

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

# Ports the mail container listens on, whatever is published outside.
CONTAINER_MAIL_PORTS = dict(MailPorts().named())


class Renderer(Protocol):
    backend: str

    def workload_names(self, config: StackConfig) -> List[str]: ...

    def render(self, workload_name: str, config: StackConfig) -> Manifest: ...

    def ref(self, workload_name: str, config: StackConfig) -> WorkloadRef: ...

    def cleanup_selectors(self, config: StackConfig) -> List[Selector]: ...


def defined(value: Any) -> Any:
    """StrictUndefined only fails when printed; a filter must trip it itself."""
    if isinstance(value, Undefined):
        value._fail_with_undefined_error()
    return value


def _render_jinja_dir(*, root: Path, tojson: Callable[[Any], str]) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(root)),
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    # every scalar goes through tojson: a JSON string is a valid YAML scalar
    env.filters["tojson"] = tojson
    env.filters["sqlstr"] = lambda v: "'" + str(v).replace("\\", "\\\\").replace("'", "''") + "'"
    return env


def database_grants(config: StackConfig) -> List[Tuple[str, str, str]]:
    """(database, user, password) for every application that owns a schema."""
    grants = [(config.sites.primary.db_name, config.sites.primary.db_user, config.sites.primary.db_password)]
    if config.domains.secondary and config.sites.secondary:
        s = config.sites.secondary
        grants.append((s.db_name, s.db_user, s.db_password))
    grants.append((config.webmail.db_name, config.webmail.db_user, config.webmail.db_password))
    grants.append((config.admin.db_name, config.admin.db_user, config.admin.db_password))
    return grants


class TemplateRenderer:
    """
    Renders one workload from `templates/<backend>/<template>` into a Manifest.
    Subclasses provide the backend name, template map and naming.
    """

    backend: str = ""
    templates: Dict[str, str] = {}

    def __init__(self, templates_dir: Optional[Path] = None):
        self._jinja = _render_jinja_dir(root=templates_dir or TEMPLATES_DIR, tojson=self._tojson)

    @staticmethod
    def _tojson(value: Any) -> str:
        return json.dumps(defined(value))

    # ------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------

    def workload_names(self, config: StackConfig) -> List[str]:
        names = list(self.templates)
        if not config.domains.secondary:
            names.remove("wordpress-secondary")
        return names

    def ref(self, workload_name: str, config: StackConfig) -> WorkloadRef:
        raise NotImplementedError

    def cleanup_selectors(self, config: StackConfig) -> List[Selector]:
        raise NotImplementedError

    def workload_context(self, workload_name: str, config: StackConfig) -> Dict[str, Any]:
        return {}

    def _manifest(self, workload_name: str, docs: List[Dict[str, Any]]) -> Manifest:
        raise NotImplementedError

    def site_context(self, workload_name: str, config: StackConfig) -> Dict[str, Any]:
        if workload_name == "wordpress-primary":
            return {"site": config.sites.primary, "domain": config.domains.primary, "port": config.sites.primary_port}
        if config.sites.secondary is None or not config.domains.secondary:
            raise ApplyError(
                "wordpress-secondary needs both domains.secondary and sites.secondary",
                workload=workload_name,
            )
        return {"site": config.sites.secondary, "domain": config.domains.secondary, "port": config.sites.secondary_port}

    # ------------------------------------------------------------

    def context(self, workload_name: str, config: StackConfig) -> Dict[str, Any]:
        ctx: Dict[str, Any] = {
            "namespace": config.namespace,
            "domains": config.domains,
            "db": config.database,
            "sites": config.sites,
            "mail": config.mail,
            "webmail": config.webmail,
            "admin": config.admin,
            "container_ports": CONTAINER_MAIL_PORTS,
        }
        ctx.update(self.workload_context(workload_name, config))
        return ctx

    def init_sql(self, config: StackConfig) -> str:
        return self._jinja.get_template("mariadb-init.sql.j2").render(grants=database_grants(config))

    def render(self, workload_name: str, config: StackConfig) -> Manifest:
        template = self.templates.get(workload_name)
        if template is None:
            raise ApplyError(f"no {self.backend} template for workload '{workload_name}'", workload=workload_name)

        path = f"{self.backend}/{template}"
        try:
            text = self._jinja.get_template(path).render(**self.context(workload_name, config))
            docs = [d for d in yaml.safe_load_all(text) if d]
        except (TemplateError, yaml.YAMLError) as e:
            raise ApplyError(f"failed to render {path} for '{workload_name}': {e}", workload=workload_name) from e

        log.debug("[render] %s -> %d document(s) from %s", workload_name, len(docs), path)
        return self._manifest(workload_name, docs)

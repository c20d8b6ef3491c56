# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/config/models.py

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator

from officestack.utils.retry import BackoffPolicy

# Required settings: present and non-blank.
NonEmpty = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
# Secrets are kept verbatim; they only need one non-blank character.
Secret = Annotated[str, StringConstraints(min_length=1, pattern=r"\S"), Field(repr=False)]
DnsLabel = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=63, pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"),
]


class _Settings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Resources(_Settings):
    cpu_request: NonEmpty = "100m"
    memory_request: NonEmpty = "256Mi"
    cpu_limit: Optional[str] = None
    memory_limit: Optional[str] = None


# Per-service request defaults. Subclasses so a partial `resources:` block
# (only limits, say) keeps the service default for the fields it omits.
class DatabaseResources(Resources):
    memory_request: NonEmpty = "512Mi"


class MailResources(Resources):
    memory_request: NonEmpty = "1Gi"


class Domains(_Settings):
    primary: NonEmpty
    secondary: Optional[str] = None     # second WordPress site, optional
    mail: NonEmpty
    webmail: NonEmpty
    admin: NonEmpty

    @field_validator("secondary", mode="before")
    @classmethod
    def _blank_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class DatabaseSettings(_Settings):
    image: NonEmpty = "mariadb:latest"
    root_password: Secret
    name: NonEmpty = "office"
    user: NonEmpty
    password: Secret
    storage: NonEmpty = "10Gi"
    resources: DatabaseResources = DatabaseResources()


class SiteCredentials(_Settings):
    db_name: NonEmpty
    db_user: NonEmpty
    db_password: Secret


class SitesSettings(_Settings):
    image: NonEmpty = "wordpress:latest"
    primary: SiteCredentials
    secondary: Optional[SiteCredentials] = None
    primary_port: int = Field(default=8000, gt=0, lt=65536)
    secondary_port: int = Field(default=8001, gt=0, lt=65536)
    resources: Resources = Resources()


class MailPorts(_Settings):
    smtp: int = Field(default=25, gt=0, lt=65536)
    smtps: int = Field(default=465, gt=0, lt=65536)
    submission: int = Field(default=587, gt=0, lt=65536)
    pop3: int = Field(default=110, gt=0, lt=65536)
    pop3s: int = Field(default=995, gt=0, lt=65536)
    imap: int = Field(default=143, gt=0, lt=65536)
    imaps: int = Field(default=993, gt=0, lt=65536)

    def named(self) -> List[Tuple[str, int]]:
        """(port-name, port) pairs in a stable order."""
        return [
            ("smtp", self.smtp),
            ("smtps", self.smtps),
            ("submission", self.submission),
            ("pop3", self.pop3),
            ("pop3s", self.pop3s),
            ("imap", self.imap),
            ("imaps", self.imaps),
        ]


class MailSettings(_Settings):
    image: NonEmpty = "mailserver/docker-mailserver:latest"
    postmaster: NonEmpty
    ports: MailPorts = MailPorts()
    spamassassin: bool = True
    clamav: bool = True
    fail2ban: bool = True
    storage: NonEmpty = "5Gi"
    resources: MailResources = MailResources()


class WebmailSettings(_Settings):
    image: NonEmpty = "roundcube/roundcubemail:latest"
    port: int = Field(default=8080, gt=0, lt=65536)     # published HTTP port
    db_name: NonEmpty = "roundcubemail"
    db_user: NonEmpty
    db_password: Secret
    des_key: Secret
    resources: Resources = Resources()


class AdminSettings(_Settings):
    image: NonEmpty = "postfixadmin/postfixadmin:latest"
    admin_user: NonEmpty
    admin_password: Secret
    port: int = Field(default=8081, gt=0, lt=65536)
    db_name: NonEmpty = "postfixadmin"
    db_user: NonEmpty
    db_password: Secret
    resources: Resources = Resources()


class RuntimeSettings(_Settings):
    """Local runtime sizing (minikube) and ports that must be free first."""

    driver: NonEmpty = "docker"
    cpus: int = Field(default=4, ge=1)
    memory_mb: int = Field(default=4096, ge=1024)
    required_free_ports: Tuple[int, ...] = (8080,)


class ToolSettings(_Settings):
    install: bool = True
    kubectl_url: NonEmpty = "https://dl.k8s.io/release/v1.30.0/bin/linux/amd64/kubectl"
    minikube_url: NonEmpty = "https://storage.googleapis.com/minikube/releases/latest/minikube-linux-amd64"


class Policies(_Settings):
    readiness: BackoffPolicy = BackoffPolicy(max_attempts=12, interval=5.0)
    install: BackoffPolicy = BackoffPolicy(max_attempts=2, interval=5.0)
    apply: BackoffPolicy = BackoffPolicy(max_attempts=3, interval=2.0)
    overrides: Dict[str, BackoffPolicy] = Field(
        default_factory=lambda: {"database": BackoffPolicy(max_attempts=12, interval=10.0)}
    )

    def for_workload(self, name: str) -> BackoffPolicy:
        return self.overrides.get(name, self.readiness)


class StackConfig(_Settings):
    backend: Literal["kubernetes", "compose"] = "kubernetes"
    namespace: DnsLabel = "office"      # kube namespace or compose project
    context: Optional[str] = None       # Kubernetes context to use
    workdir: Optional[Path] = None

    domains: Domains
    database: DatabaseSettings
    sites: SitesSettings
    mail: MailSettings
    webmail: WebmailSettings
    admin: AdminSettings

    runtime: RuntimeSettings = RuntimeSettings()
    tools: ToolSettings = ToolSettings()
    policies: Policies = Policies()
    verify_urls: bool = False

    @model_validator(mode="after")
    def _secondary_site_needs_credentials(self) -> "StackConfig":
        if self.domains.secondary and self.sites.secondary is None:
            raise ValueError("sites.secondary is required when domains.secondary is set")
        return self

    def resolved_workdir(self) -> Path:
        if self.workdir is not None:
            return Path(self.workdir).expanduser()
        return Path.home() / ".officestack" / self.namespace

    def access_urls(self) -> Dict[str, str]:
        """
        Returns the public URLs of every managed service, keyed by a
        human label. Mirrors what the install scripts echoed at the end.
        """
        urls = {"wordpress-primary": f"https://{self.domains.primary}"}
        if self.domains.secondary:
            urls["wordpress-secondary"] = f"https://{self.domains.secondary}"
        urls["mail"] = f"https://{self.domains.mail}"
        urls["webmail"] = f"https://{self.domains.webmail}"
        urls["mail-admin"] = f"https://{self.domains.admin}"
        return urls

# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/config/loader.py

import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from officestack.errors import ConfigurationError
from .models import StackConfig

log = logging.getLogger("officestack")

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml using this priority:

    1. OFFICESTACK_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the stack config
    """
    env = os.environ.get("OFFICESTACK_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("OFFICESTACK_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "secrets.yaml"
    if p.is_file() and p.resolve() != config_path.resolve():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    try:
        raw = path.read_text()
    except OSError as e:
        raise ConfigurationError(f"cannot read config file {path}: {e}") from e
    expanded = os.path.expandvars(raw)
    unresolved = sorted(set(_PLACEHOLDER.findall(expanded)))
    if unresolved:
        raise ConfigurationError(
            f"unset environment variables referenced in {path}: {', '.join(unresolved)}"
        )
    try:
        data = yaml.safe_load(expanded) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def format_validation_error(exc: ValidationError) -> str:
    lines = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        lines.append(f"{loc}: {err.get('msg')}")
    return "; ".join(lines)


def parse_config(data: Any) -> StackConfig:
    """
    Validate a raw mapping (or pass through an existing StackConfig).
    Every failure is reported as ConfigurationError naming the bad keys.
    """
    if isinstance(data, StackConfig):
        return data
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"configuration must be a mapping, got {type(data).__name__}")
    try:
        return StackConfig.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {format_validation_error(e)}") from e


def load_config(path: str | Path) -> StackConfig:
    """
    Load and validate a stack YAML config.

    Secrets are injected via two methods (both can be used together):

    **Method 1: secrets.yaml file**
        A ``secrets.yaml`` whose structure mirrors the stack config is
        deep-merged into the config dict before validation. Discovery order:
          1. ``OFFICESTACK_SECRETS_FILE`` env var, explicit path
          2. ``secrets.yaml`` next to the stack config file

    **Method 2: environment variables**
        ``${ENV_VAR}`` placeholders inside either file are resolved with
        ``os.path.expandvars`` at load time.
    """
    path = Path(path)
    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        _deep_merge(data, _load_yaml(secrets_path))
    else:
        log.debug("No secrets.yaml found, proceeding without secrets merge")

    return parse_config(data)

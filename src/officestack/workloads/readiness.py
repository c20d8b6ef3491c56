# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/workloads/readiness.py

from __future__ import annotations

import logging
from typing import Sequence

import requests

from .models import ReadinessCheck, ReadinessState

log = logging.getLogger("officestack")


def status_ready(driver, workload) -> ReadinessState:
    """Default predicate: whatever the driver reports for the workload ref."""
    return driver.status(workload.ref)


def accepts_query(argv: Sequence[str]) -> ReadinessCheck:
    """
    Ready once the rollout is available AND a trivial command succeeds
    inside the workload (e.g. the mariadb `healthcheck.sh`).
    """
    argv = tuple(argv)

    def check(driver, workload) -> ReadinessState:
        state = driver.status(workload.ref)
        if state != ReadinessState.READY:
            return state
        if driver.probe(workload.ref, argv):
            return ReadinessState.READY
        return ReadinessState.PENDING

    return check


def http_ok(url: str, *, timeout: float = 10.0, verify: bool = True) -> ReadinessCheck:
    """HEAD *url*; 2xx/3xx is ready, anything else (or no answer) is pending."""

    def check(driver, workload) -> ReadinessState:
        try:
            resp = requests.head(url, timeout=timeout, allow_redirects=False, verify=verify)
        except requests.RequestException as e:
            log.debug("[readiness] %s not reachable: %s", url, e)
            return ReadinessState.PENDING
        if 200 <= resp.status_code < 400:
            return ReadinessState.READY
        log.debug("[readiness] %s answered %s", url, resp.status_code)
        return ReadinessState.PENDING

    return check


def all_of(*checks: ReadinessCheck) -> ReadinessCheck:
    """First non-ready result wins."""

    def check(driver, workload) -> ReadinessState:
        for c in checks:
            state = c(driver, workload)
            if state != ReadinessState.READY:
                return state
        return ReadinessState.READY

    return check

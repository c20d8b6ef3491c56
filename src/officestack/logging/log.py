# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/officestack/logging/log.py

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

FILE_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"
CONSOLE_FORMAT = "%(levelname)-7s | %(message)s"

# run logs (and their .jsonl event streams) kept per name
KEEP_RUNS = 20


def prune_runs(base_dir: Path, name: str, keep: int = KEEP_RUNS) -> list[Path]:
    """Delete all but the newest `keep` runs of `name`. Returns what was removed."""
    logs = sorted(base_dir.glob(f"{name}-*.log"), key=lambda p: p.name, reverse=True)
    removed = []
    for old in logs[keep:]:
        for path in (old, old.with_suffix(".jsonl")):
            if path.exists():
                path.unlink()
                removed.append(path)
    return removed


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "officestack",
    verbose: bool = False,
    run_id: str | None = None,
    keep: int = KEEP_RUNS,
) -> tuple[logging.Logger, str, Path]:
    """
    One log file per run under ~/.officestack/logs, named
    <name>-<utc timestamp>-<run_id>.log so a plain sort is chronological.

    The file gets the full DEBUG trace (every command, its output and
    every event); the console gets INFO, or DEBUG with --debug. Calling
    it again replaces the handlers of the previous run.
    """
    run_id = run_id or str(uuid.uuid4())

    base_dir = Path(base_dir) if base_dir is not None else Path.home() / ".officestack" / "logs"
    base_dir.mkdir(parents=True, exist_ok=True)
    removed = prune_runs(base_dir, name, keep=max(keep - 1, 0))

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = False

    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.info("=== officestack run %s ===", run_id)
    logger.debug("log_file=%s", log_path)
    if removed:
        logger.debug("pruned %d old run file(s) from %s", len(removed), base_dir)

    return logger, run_id, log_path

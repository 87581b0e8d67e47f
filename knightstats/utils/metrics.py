# ==============================================================================
# metrics.py  –  Prometheus counters for sync runs
#
# Metrics live in the default registry; expose them with
# `start_metrics_server(port)` (METRICS_PORT) from a long-running process.
# ==============================================================================

from __future__ import annotations

import os

from prometheus_client import Counter, Histogram, start_http_server

from knightstats.utils.logging_utils import setup_logger

LOGGER = setup_logger("metrics")

JOB = os.getenv("JOB_NAME", "knightstats")

GAMES_FETCHED = Counter(
    "knightstats_games_fetched_total",
    "Games returned by a platform adapter",
    ["source", "job"],
)

GAMES_ADDED = Counter(
    "knightstats_games_added_total",
    "New games persisted by sync",
    ["source", "job"],
)

SOURCE_FAILURES = Counter(
    "knightstats_source_failures_total",
    "Per-source sync failures",
    ["source", "job"],
)

SYNC_RUNS = Counter(
    "knightstats_sync_runs_total",
    "Completed sync invocations by outcome",
    ["outcome", "job"],
)

SYNC_DURATION = Histogram(
    "knightstats_sync_duration_seconds",
    "Wall time of one sync invocation",
    ["job"],
)


def record_source(source: str, fetched: int, added: int) -> None:
    GAMES_FETCHED.labels(source=source, job=JOB).inc(fetched)
    GAMES_ADDED.labels(source=source, job=JOB).inc(added)


def record_failure(source: str) -> None:
    SOURCE_FAILURES.labels(source=source, job=JOB).inc()


def record_run(success: bool, seconds: float) -> None:
    outcome = "completed" if success else "partially_failed"
    SYNC_RUNS.labels(outcome=outcome, job=JOB).inc()
    SYNC_DURATION.labels(job=JOB).observe(seconds)


def start_metrics_server(port: int = int(os.getenv("METRICS_PORT", 8000))) -> None:
    start_http_server(port)
    LOGGER.info("Prometheus metrics exposed on :%d", port)

# SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for the agent runtime."""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

ACTION_RUNS = Counter(
    "fleet_agent_action_runs_total",
    "Action invocations by outcome (ok, handler_error, exception or a runner error kind)",
    labelnames=("action", "outcome"),
)

ACTION_LATENCY = Histogram(
    "fleet_agent_action_latency_ms",
    "Time spent inside action handlers (milliseconds)",
    labelnames=("action", "operation"),
    buckets=(1, 5, 10, 50, 100, 500, 1000, 5000, 30000, 120000),
)

REQUESTS = Counter(
    "fleet_agent_requests_total",
    "Requests received from the transport",
    labelnames=("method", "status"),
)

TASKS_IN_FLIGHT = Gauge(
    "fleet_agent_tasks_in_flight",
    "Asynchronous action tasks currently running",
)

REQUEST_LATENCY = Histogram(
    "fleet_agent_request_latency_ms",
    "Time from decoding a request to having its response (milliseconds)",
    labelnames=("method",),
    buckets=(1, 5, 10, 50, 100, 500, 1000, 5000, 30000),
)

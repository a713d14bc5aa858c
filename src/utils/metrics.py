"""Prometheus metrics for the version engine.

All metric objects are defined at import time and only observed by the
request pipeline; they never influence routing decisions.
"""

from __future__ import annotations

from prometheus_client import Counter

version_resolutions_total = Counter(
    "version_resolutions_total",
    "Requests resolved to an API version",
    ["source", "version"],
)
version_resolution_errors_total = Counter(
    "version_resolution_errors_total",
    "Requests that failed version resolution or routing",
    ["kind"],
)
version_channel_conflicts_total = Counter(
    "version_channel_conflicts_total",
    "Requests whose channels disagreed and were settled by precedence",
    ["winner"],
)
deprecated_version_requests_total = Counter(
    "deprecated_version_requests_total",
    "Requests served by a deprecated or sunset API version",
    ["version", "state"],
)

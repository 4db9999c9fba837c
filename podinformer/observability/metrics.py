"""Prometheus metrics for the informer pipeline.

Metrics are registered on the default registry; nothing here serves them.
A host that wants them scraped calls ``prometheus_client.start_http_server``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

events_total = Counter(
    "podinformer_events_total",
    "Change feed events processed by the informer loop",
    ["type"],
)

callbacks_total = Counter(
    "podinformer_callbacks_total",
    "Snapshot deliveries to the consumer callback",
)

snapshot_pods = Gauge(
    "podinformer_snapshot_pods",
    "Number of pods in the most recently delivered snapshot",
)

malformed_objects_total = Counter(
    "podinformer_malformed_objects_total",
    "Stored objects skipped by the projector because they could not be interpreted",
)

watch_reconnects_total = Counter(
    "podinformer_watch_reconnects_total",
    "Watch streams re-established after a timeout or transport error",
)

relists_total = Counter(
    "podinformer_relists_total",
    "Full relists performed after watch expiry or for periodic resync",
    ["reason"],
)

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Prometheus exporter using prometheus_client, plus a JSON snapshot endpoint
for the presentation layer.

Endpoints:
- GET <telemetry.path> (default /metrics): Prometheus exposition
- GET /api/snapshot: latest DashboardSnapshot as JSON
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional
from urllib.parse import urlparse

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, generate_latest

from ..shared.config import TelemetryConfig
from .dashboard import DashboardSnapshot
from .scheduler import RefreshEvent
from .state import ApplyOutcome
from .summary import SERIES_NAMES

SNAPSHOT_PATH = "/api/snapshot"


@dataclass
class MetricHandles:
    fetch: Counter
    stale_discarded: Counter
    loading: Gauge
    last_update_timestamp_seconds: Gauge
    series_points: Gauge
    latest_value: Gauge
    change: Gauge


class MetricsExporter:
    def __init__(self, telemetry: TelemetryConfig, registry: Optional[CollectorRegistry] = None) -> None:
        self.telemetry = telemetry
        self.registry = registry or CollectorRegistry()
        self.log = logging.getLogger(__name__)
        pfx = telemetry.metric_prefix
        self.metrics = MetricHandles(
            fetch=Counter(f"{pfx}fetch", "Completed fetches by outcome (success, transport, api_rejected, malformed)", ['outcome'], registry=self.registry),
            stale_discarded=Counter(f"{pfx}stale_discarded", "Fetch results discarded as stale", registry=self.registry),
            loading=Gauge(f"{pfx}loading", "1 while the most recently issued fetch is pending", registry=self.registry),
            last_update_timestamp_seconds=Gauge(f"{pfx}last_update_timestamp_seconds", "Time of the last applied dataset (epoch seconds)", registry=self.registry),
            series_points=Gauge(f"{pfx}series_points", "Points in the current dataset per series", ['series'], registry=self.registry),
            latest_value=Gauge(f"{pfx}latest_value", "Latest value per series", ['series'], registry=self.registry),
            change=Gauge(f"{pfx}change", "Change indicator per series", ['series'], registry=self.registry),
        )
        self._snapshot_lock = threading.Lock()
        self._snapshot_payload = json.dumps(DashboardSnapshot().to_dict()).encode("utf-8")
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def on_refresh(self, snapshot: DashboardSnapshot, event: RefreshEvent) -> None:
        """Scheduler listener: count outcomes and mirror the snapshot into gauges."""
        if event.outcome == ApplyOutcome.APPLIED:
            self.metrics.fetch.labels(outcome="success").inc()
        elif event.outcome == ApplyOutcome.FAILED and event.error is not None:
            self.metrics.fetch.labels(outcome=event.error.kind.value).inc()
        elif event.outcome == ApplyOutcome.STALE:
            self.metrics.stale_discarded.inc()
        self.update(snapshot)

    def update(self, snapshot: DashboardSnapshot) -> None:
        m = self.metrics
        m.loading.set(1 if snapshot.loading else 0)
        if snapshot.last_update is not None:
            m.last_update_timestamp_seconds.set(snapshot.last_update.timestamp())
        for series, count in snapshot.point_counts.items():
            m.series_points.labels(series=series).set(count)
        for series in SERIES_NAMES:
            summary = snapshot.summaries.get(series)
            self._set_or_clear(m.latest_value, series, summary.value if summary else None)
            self._set_or_clear(m.change, series, summary.change if summary else None)

        payload = json.dumps(snapshot.to_dict()).encode("utf-8")
        with self._snapshot_lock:
            self._snapshot_payload = payload

    @staticmethod
    def _set_or_clear(gauge: Gauge, series: str, value: Optional[float]) -> None:
        if value is not None:
            gauge.labels(series=series).set(float(value))
            return
        try:
            gauge.remove(series)
        except KeyError:
            pass

    def render_metrics(self) -> bytes:
        return generate_latest(self.registry)

    def snapshot_json(self) -> bytes:
        with self._snapshot_lock:
            return self._snapshot_payload

    def start_http(self) -> None:
        """Serve metrics and the snapshot from a daemon thread."""
        tel = self.telemetry
        outer_self = self

        class Handler(BaseHTTPRequestHandler):  # type: ignore
            def log_message(self, format: str, *args) -> None:  # quiet logs
                return

            def _send(self_inner, status: int, body: bytes, content_type: str) -> None:
                self_inner.send_response(status)
                self_inner.send_header("Content-Type", content_type)
                self_inner.send_header("Content-Length", str(len(body)))
                self_inner.end_headers()
                self_inner.wfile.write(body)

            def do_GET(self_inner):  # type: ignore
                path = urlparse(self_inner.path).path
                if path == tel.path:
                    self_inner._send(200, outer_self.render_metrics(), CONTENT_TYPE_LATEST)
                elif path == SNAPSHOT_PATH:
                    self_inner._send(200, outer_self.snapshot_json(), "application/json")
                else:
                    self_inner._send(404, b"not found\n", "text/plain; charset=utf-8")

        self._server = HTTPServer((tel.listen_address, tel.listen_port), Handler)
        self._thread = threading.Thread(target=self._server.serve_forever, name="market-monitor-http", daemon=True)
        self._thread.start()
        self.log.info(f"Telemetry listening on http://{tel.listen_address}:{tel.listen_port}{tel.path} (snapshot at {SNAPSHOT_PATH})")

    def stop_http(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._thread = None

#!/usr/bin/env python3
"""
Tests for the Prometheus exporter and snapshot payload
"""
import json
from datetime import datetime, timezone

from prometheus_client import CollectorRegistry

from market_monitor.core.dashboard import build_snapshot
from market_monitor.core.exporter import MetricsExporter
from market_monitor.core.scheduler import RefreshEvent
from market_monitor.core.state import ApplyOutcome, RequestTicket, SessionState
from market_monitor.shared.config import TelemetryConfig
from market_monitor.shared.market_client import FetchError, FetchErrorKind, FetchResult
from market_monitor.shared.models import (
    Commodities,
    CommodityPoint,
    Dataset,
    FxPoint,
    Period,
    SpreadPoint,
)

NOW = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)
TICKET = RequestTicket(request_id=1, generation=0, period=Period.FIVE_DAYS)


def make_exporter():
    registry = CollectorRegistry()
    return MetricsExporter(TelemetryConfig(metric_prefix="mm_"), registry=registry), registry


def applied_snapshot():
    state = SessionState(clock=lambda: NOW)
    ds = Dataset(
        bond_spread=(SpreadPoint("2024-01-02", 1.55, 4.1, 2.55),),
        fx=(FxPoint("2024-01-01", 148.0), FxPoint("2024-01-02", 149.0)),
        commodities=Commodities(
            gold=(CommodityPoint("2024-01-01", 2050.0, None), CommodityPoint("2024-01-02", 2061.5, 11.5)),
            oil=(),
        ),
    )
    state.complete(state.begin_request(), FetchResult.success(ds))
    return build_snapshot(state.snapshot())


def test_applied_refresh_updates_gauges():
    exporter, registry = make_exporter()

    exporter.on_refresh(applied_snapshot(), RefreshEvent(TICKET, ApplyOutcome.APPLIED))

    assert registry.get_sample_value("mm_fetch_total", {"outcome": "success"}) == 1.0
    assert registry.get_sample_value("mm_loading") == 0.0
    assert registry.get_sample_value("mm_last_update_timestamp_seconds") == NOW.timestamp()
    assert registry.get_sample_value("mm_series_points", {"series": "fx"}) == 2.0
    assert registry.get_sample_value("mm_series_points", {"series": "oil"}) == 0.0
    assert registry.get_sample_value("mm_latest_value", {"series": "fx"}) == 149.0
    assert registry.get_sample_value("mm_change", {"series": "fx"}) == 1.0
    assert registry.get_sample_value("mm_change", {"series": "spread"}) == 1.55
    assert registry.get_sample_value("mm_change", {"series": "gold"}) == 11.5
    # No oil data: nothing exported for it
    assert registry.get_sample_value("mm_latest_value", {"series": "oil"}) is None


def test_failures_are_counted_by_kind():
    exporter, registry = make_exporter()
    snapshot = applied_snapshot()
    err = FetchError(kind=FetchErrorKind.MALFORMED, message="Malformed response")

    exporter.on_refresh(snapshot, RefreshEvent(TICKET, ApplyOutcome.FAILED, err))
    exporter.on_refresh(snapshot, RefreshEvent(TICKET, ApplyOutcome.FAILED, err))

    assert registry.get_sample_value("mm_fetch_total", {"outcome": "malformed"}) == 2.0


def test_stale_results_are_counted():
    exporter, registry = make_exporter()

    exporter.on_refresh(applied_snapshot(), RefreshEvent(TICKET, ApplyOutcome.STALE))

    assert registry.get_sample_value("mm_stale_discarded_total") == 1.0


def test_snapshot_json_round_trip():
    exporter, _ = make_exporter()
    exporter.update(applied_snapshot())

    payload = json.loads(exporter.snapshot_json())

    assert payload["period"] == "5d"
    assert payload["loading"] is False
    assert payload["error"] is None
    assert payload["lastUpdate"] == NOW.isoformat()
    assert payload["combinedPoints"] == [
        {"date": "2024-01-01", "spread": 0.0, "rate": 148.0, "us10y": 0.0, "jp10y": 0.0},
        {"date": "2024-01-02", "spread": 1.55, "rate": 149.0, "us10y": 4.1, "jp10y": 2.55},
    ]
    assert payload["summaries"]["oil"] == {"latest": None, "value": None, "change": None}
    assert payload["summaries"]["gold"]["latest"] == {"date": "2024-01-02", "price": 2061.5, "change": 11.5}
    assert payload["pointCounts"]["fx"] == 2
    assert payload["commodities"] == {
        "gold": [
            {"date": "2024-01-01", "price": 2050.0, "change": None},
            {"date": "2024-01-02", "price": 2061.5, "change": 11.5},
        ],
        "oil": [],
    }
    assert payload["pointCounts"]["gold"] == 2


def test_render_metrics_contains_prefix():
    exporter, _ = make_exporter()
    exporter.update(applied_snapshot())
    assert b"mm_latest_value" in exporter.render_metrics()

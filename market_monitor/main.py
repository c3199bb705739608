#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Market Monitor main runner.
- Loads configuration (YAML + MARKET_MONITOR_BASE_URL + CLI flags)
- Optionally starts the Prometheus /metrics and /api/snapshot server
- Polls the market-data API on a fixed cadence and logs a console summary

Usage examples:
  python -m market_monitor.main --help
  python -m market_monitor.main --config config/monitor_config.yaml
  python -m market_monitor.main --once --period 1mo  # one fetch, print summary, exit
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import List, Optional

from .core.dashboard import DashboardSnapshot
from .core.exporter import MetricsExporter
from .core.scheduler import RefreshEvent, RefreshScheduler
from .core.state import SessionState
from .shared.config import ConfigError, MonitorConfig, apply_cli_overrides, load_config
from .shared.logging_setup import setup_logging
from .shared.market_client import MarketDataClient
from .shared.models import Period

log = logging.getLogger(__name__)


def format_summary(snapshot: DashboardSnapshot) -> str:
    """Plain-text console summary: one line per series plus the combined series size."""
    lines = []
    for name, s in snapshot.summaries.items():
        if s.value is None:
            lines.append(f"{name}: no data")
            continue
        msg = f"{name}: value={s.value:.4f}"
        if s.change is not None:
            msg += f" change={s.change:+.4f}"
        lines.append(msg)
    lines.append(f"combined spread/fx points: {len(snapshot.combined_points)}")
    if snapshot.error:
        lines.append(f"error: {snapshot.error}")
    return "\n".join(lines)


def _log_summary(snapshot: DashboardSnapshot, event: RefreshEvent) -> None:
    if event.outcome is None:
        return
    log.info(f"Update ({event.outcome.value}, period={snapshot.period.value}):\n" + format_summary(snapshot))


async def run_once(config: MonitorConfig) -> int:
    client = MarketDataClient(config.api.base_url, timeout=config.api.timeout_seconds)
    state = SessionState(period=config.schedule.default_period)
    try:
        async with RefreshScheduler(client, state, config.schedule.refresh_interval_seconds) as scheduler:
            await scheduler.trigger()
            snapshot = scheduler.snapshot()
    finally:
        client.close()
    print(format_summary(snapshot))
    return 1 if snapshot.error else 0


async def run_forever(config: MonitorConfig, telemetry: bool = True) -> None:
    client = MarketDataClient(config.api.base_url, timeout=config.api.timeout_seconds)
    state = SessionState(period=config.schedule.default_period)
    exporter: Optional[MetricsExporter] = None
    if telemetry and config.telemetry.enabled:
        exporter = MetricsExporter(config.telemetry)
        exporter.start_http()

    try:
        async with RefreshScheduler(client, state, config.schedule.refresh_interval_seconds) as scheduler:
            scheduler.add_listener(_log_summary)
            if exporter is not None:
                scheduler.add_listener(exporter.on_refresh)
            scheduler.start()
            # Runs until cancelled (Ctrl-C)
            await asyncio.Event().wait()
    finally:
        if exporter is not None:
            exporter.stop_http()
        client.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Market Monitor: spread / FX / commodities poller')
    parser.add_argument('--config', type=str, default=None, help='Path to monitor_config.yaml')
    parser.add_argument('--base-url', type=str, default=None, help='Market-data API base URL (overrides config and MARKET_MONITOR_BASE_URL)')
    parser.add_argument('--period', type=str, default=None, choices=[p.value for p in Period], help='Historical window to request')
    parser.add_argument('--interval-ms', type=int, default=None, help='Refresh cadence in milliseconds')
    parser.add_argument('--once', action='store_true', help='Run one fetch, print the summary and exit')
    parser.add_argument('--no-telemetry', action='store_true', help='Disable metrics server even if enabled in config')
    parser.add_argument('--log-level', type=str, default=None, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], help='Logging level')
    parser.add_argument('--print-config', action='store_true', help='Print effective configuration as JSON and exit')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(args.config)
        config = apply_cli_overrides(
            config,
            base_url=args.base_url,
            period=args.period,
            interval_ms=args.interval_ms,
            log_level=args.log_level,
        )
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.logging_level)

    if args.print_config:
        print(json.dumps(asdict(config), indent=2, sort_keys=True, default=str))
        return 0

    if args.once:
        return asyncio.run(run_once(config))

    try:
        asyncio.run(run_forever(config, telemetry=not args.no_telemetry))
    except KeyboardInterrupt:
        log.info("Interrupted, shutting down")
    return 0


if __name__ == '__main__':
    sys.exit(main())

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Refresh scheduler.

Runs on a single asyncio event loop:
- start(): immediate fetch plus a recurring timer task
- trigger(): out-of-band fetch (manual refresh)
- set_period(): restart timer and fetch under a new period
- stop() / ``async with``: cancel the timer and abandon in-flight fetches

Overlapping fetches are allowed to race. Each one carries a ticket from
SessionState, which decides whether its result is applied or discarded.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from ..shared.market_client import FetchError, FetchErrorKind, FetchResult
from ..shared.models import Period
from .dashboard import DashboardSnapshot, build_snapshot
from .state import ApplyOutcome, RequestTicket, SessionState

log = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0


@dataclass(frozen=True)
class RefreshEvent:
    """What happened to one request. outcome is None when the request was just issued."""
    ticket: RequestTicket
    outcome: Optional[ApplyOutcome] = None
    error: Optional[FetchError] = None


Listener = Callable[[DashboardSnapshot, RefreshEvent], None]


class RefreshScheduler:
    def __init__(self, client, state: SessionState, interval_seconds: float = DEFAULT_INTERVAL_SECONDS) -> None:
        """
        Args:
            client: object exposing ``async fetch_all_async(period) -> FetchResult``
            state: session state container mutated only by this scheduler
            interval_seconds: cadence of the recurring timer
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.client = client
        self.state = state
        self.interval_seconds = interval_seconds
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> DashboardSnapshot:
        return build_snapshot(self.state.snapshot())

    def start(self, period: Optional[Period | str] = None) -> asyncio.Task:
        """Fetch now and every interval_seconds after. Returns the immediate fetch task."""
        if period is not None:
            self.state.change_period(period)
        self._cancel_timer()
        self._timer = asyncio.create_task(self._tick_loop(), name="market-monitor-timer")
        log.info(f"Scheduler started: period={self.state.period.value} every {self.interval_seconds:g}s")
        return self._issue()

    def trigger(self) -> asyncio.Task:
        """Manual refresh. Never dropped, even while another fetch is pending."""
        return self._issue()

    def set_period(self, period: Period | str) -> Optional[asyncio.Task]:
        """
        Switch to a new period and restart with an immediate fetch.

        In-flight requests for the old period keep running but their results
        are discarded. Returns None when the period is unchanged.
        """
        if not self.state.change_period(period):
            return None
        return self.start()

    async def stop(self) -> None:
        """Cancel the timer and every in-flight fetch, waiting for them to unwind."""
        self._cancel_timer()
        pending = list(self._inflight)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        log.info("Scheduler stopped")

    async def __aenter__(self) -> "RefreshScheduler":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self._issue()

    def _issue(self) -> asyncio.Task:
        ticket = self.state.begin_request()
        log.debug(f"Issuing request={ticket.request_id} period={ticket.period.value}")
        self._notify(RefreshEvent(ticket=ticket))
        task = asyncio.create_task(self._run_fetch(ticket), name=f"market-monitor-fetch-{ticket.request_id}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _run_fetch(self, ticket: RequestTicket) -> ApplyOutcome:
        try:
            result = await self.client.fetch_all_async(ticket.period)
        except asyncio.CancelledError:
            self.state.abandon(ticket)
            raise
        except Exception as e:
            # The client reports failures as values; anything raised here is unexpected
            log.exception(f"Fetch raised for request={ticket.request_id}: {e}")
            result = FetchResult.failure(FetchErrorKind.TRANSPORT, f"Unexpected error: {e}", type(e).__name__)

        outcome = self.state.complete(ticket, result)
        if outcome == ApplyOutcome.FAILED:
            log.warning(f"Refresh failed ({result.error.kind.value}) period={ticket.period.value}: {result.error.message}")
        elif outcome == ApplyOutcome.APPLIED:
            log.info(f"Refresh ok period={ticket.period.value} request={ticket.request_id}")
        self._notify(RefreshEvent(ticket=ticket, outcome=outcome, error=result.error))
        return outcome

    def _notify(self, event: RefreshEvent) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot, event)
            except Exception:
                log.exception(f"Listener {listener!r} failed")

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Session state owned by the refresh scheduler.

Holds the current Dataset and RefreshState. Every mutation goes through
begin_request / complete / change_period so that stale completions can be
recognized and discarded in one place:

- each issued fetch gets a ticket (request_id, generation, period);
- change_period bumps the generation, orphaning every in-flight ticket;
- a completion is applied only if its generation is current; within a
  generation results are applied in the order they settle.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from ..shared.market_client import FetchResult
from ..shared.models import DEFAULT_PERIOD, Dataset, Period, RefreshState

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RequestTicket:
    request_id: int
    generation: int
    period: Period


@dataclass(frozen=True)
class StateSnapshot:
    """Read-only view handed to the reconciler, summaries and listeners"""
    dataset: Dataset
    refresh: RefreshState


class ApplyOutcome(str, Enum):
    APPLIED = "applied"
    FAILED = "failed"
    STALE = "stale"


class SessionState:
    def __init__(self, period: Period | str = DEFAULT_PERIOD, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._dataset = Dataset()
        self._refresh = RefreshState(period=Period.parse(period))
        self._clock = clock or _utcnow
        self._generation = 0
        self._next_request_id = 0
        self._latest_issued = 0

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    @property
    def period(self) -> Period:
        return self._refresh.period

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def loading(self) -> bool:
        return self._refresh.loading

    @property
    def error(self) -> Optional[str]:
        return self._refresh.error

    @property
    def last_update(self) -> Optional[datetime]:
        return self._refresh.last_update

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(dataset=self._dataset, refresh=copy.copy(self._refresh))

    def change_period(self, period: Period | str) -> bool:
        """Switch period and orphan in-flight requests. Returns False if the period is unchanged."""
        period = Period.parse(period)
        if period == self._refresh.period:
            return False
        self._generation += 1
        self._refresh.period = period
        log.info(f"Period changed to {period.value} (generation {self._generation})")
        return True

    def begin_request(self) -> RequestTicket:
        """Register a new fetch under the current period: loading on, error cleared."""
        self._next_request_id += 1
        ticket = RequestTicket(
            request_id=self._next_request_id,
            generation=self._generation,
            period=self._refresh.period,
        )
        self._latest_issued = ticket.request_id
        self._refresh.loading = True
        self._refresh.error = None
        return ticket

    def _settle(self, ticket: RequestTicket) -> None:
        if ticket.request_id == self._latest_issued:
            self._refresh.loading = False

    def is_stale(self, ticket: RequestTicket) -> bool:
        return ticket.generation != self._generation

    def complete(self, ticket: RequestTicket, result: FetchResult) -> ApplyOutcome:
        """
        Apply a fetch result. The single place where Dataset and error change.

        Success replaces the Dataset wholesale and stamps last_update; failure
        records the error message and leaves the Dataset as it was.
        """
        self._settle(ticket)

        if self.is_stale(ticket):
            log.debug(
                f"Discarding stale result request={ticket.request_id} period={ticket.period.value} "
                f"generation={ticket.generation} (current={self._generation})"
            )
            return ApplyOutcome.STALE

        if result.ok:
            self._dataset = result.dataset
            self._refresh.error = None
            self._refresh.last_update = self._clock()
            return ApplyOutcome.APPLIED

        self._refresh.error = result.error.message
        return ApplyOutcome.FAILED

    def abandon(self, ticket: RequestTicket) -> None:
        """Settle a request that will never produce a result (cancelled task)."""
        self._settle(ticket)

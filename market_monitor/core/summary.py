#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Point-in-time summaries for the tracked series (latest value and change).

A change that cannot be computed is left as None, never filled with a number.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, TypeVar

from ..shared.models import Dataset

T = TypeVar("T")

SERIES_NAMES = ("spread", "fx", "gold", "oil")


@dataclass(frozen=True)
class SeriesSummary:
    latest: Optional[Any] = None
    value: Optional[float] = None
    change: Optional[float] = None


def latest(series: Sequence[T]) -> Optional[T]:
    """Last point in delivery order, None for an empty series. No sorting is applied."""
    if not series:
        return None
    return series[-1]


def delta(series: Sequence[Any], field: str) -> Optional[float]:
    """Last minus first value of `field`; None with fewer than two points."""
    if len(series) < 2:
        return None
    return float(getattr(series[-1], field)) - float(getattr(series[0], field))


def summarize_spread(series) -> SeriesSummary:
    # The spread card shows the current spread as its change indicator too
    point = latest(series)
    if point is None:
        return SeriesSummary()
    return SeriesSummary(latest=point, value=point.spread, change=point.spread)


def summarize_fx(series) -> SeriesSummary:
    point = latest(series)
    if point is None:
        return SeriesSummary()
    return SeriesSummary(latest=point, value=point.rate, change=delta(series, "rate"))


def summarize_commodity(series) -> SeriesSummary:
    """Commodities report the upstream-computed change of their latest point."""
    point = latest(series)
    if point is None:
        return SeriesSummary()
    return SeriesSummary(latest=point, value=point.price, change=point.change)


def summarize(dataset: Dataset) -> Dict[str, SeriesSummary]:
    """Summaries keyed by series name: spread, fx, gold, oil."""
    return {
        "spread": summarize_spread(dataset.bond_spread),
        "fx": summarize_fx(dataset.fx),
        "gold": summarize_commodity(dataset.commodities.gold),
        "oil": summarize_commodity(dataset.commodities.oil),
    }

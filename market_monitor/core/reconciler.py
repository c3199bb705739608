#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Date-keyed join of the yield spread series onto the USD/JPY series.

The FX series drives the output: one combined point per FX point, in FX
order. Spread values are looked up by calendar date and zero-filled when the
spread series has no point for that day; spread-only dates are dropped.
"""
from __future__ import annotations

from typing import Dict, List, Sequence

from ..shared.models import CombinedPoint, FxPoint, SpreadPoint

_TIME_SEPARATORS = (" ", "T")


def normalize_date_key(date: str) -> str:
    """Strip any time-of-day component: '2024-01-02 09:00' and '2024-01-02T09:00:00Z' -> '2024-01-02'."""
    key = date.strip()
    for sep in _TIME_SEPARATORS:
        key = key.split(sep, 1)[0]
    return key


def combine(spread_series: Sequence[SpreadPoint], fx_series: Sequence[FxPoint]) -> List[CombinedPoint]:
    """
    Align spread and FX points on normalized date keys for dual-axis charts.

    Args:
        spread_series: Spread points in delivery order
        fx_series: FX points in delivery order

    Returns:
        One CombinedPoint per FX point, or [] if either series is empty
    """
    if not spread_series or not fx_series:
        return []

    # Later duplicates overwrite earlier ones
    by_day: Dict[str, SpreadPoint] = {normalize_date_key(p.date): p for p in spread_series}

    combined: List[CombinedPoint] = []
    for fx in fx_series:
        key = normalize_date_key(fx.date)
        sp = by_day.get(key)
        if sp is None:
            combined.append(CombinedPoint(date=key, spread=0.0, rate=fx.rate, us10y=0.0, jp10y=0.0))
        else:
            combined.append(CombinedPoint(date=key, spread=sp.spread, rate=fx.rate, us10y=sp.us10y, jp10y=sp.jp10y))
    return combined

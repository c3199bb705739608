#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Snapshot handed to the presentation layer: combined spread/FX series,
gold and oil price series, per-series summaries and refresh status. Raw numbers and ISO timestamps only;
all display formatting belongs to the consumer.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..shared.models import DEFAULT_PERIOD, CombinedPoint, CommodityPoint, Period
from .reconciler import combine
from .state import StateSnapshot
from .summary import SeriesSummary, summarize


@dataclass(frozen=True)
class DashboardSnapshot:
    combined_points: List[CombinedPoint] = field(default_factory=list)
    commodities: Dict[str, List[CommodityPoint]] = field(default_factory=dict)
    summaries: Dict[str, SeriesSummary] = field(default_factory=dict)
    loading: bool = False
    error: Optional[str] = None
    last_update: Optional[datetime] = None
    period: Period = DEFAULT_PERIOD
    point_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "combinedPoints": [asdict(p) for p in self.combined_points],
            "commodities": {name: [asdict(p) for p in points] for name, points in self.commodities.items()},
            "summaries": {
                name: {
                    "latest": asdict(s.latest) if s.latest is not None else None,
                    "value": s.value,
                    "change": s.change,
                }
                for name, s in self.summaries.items()
            },
            "loading": self.loading,
            "error": self.error,
            "lastUpdate": self.last_update.isoformat() if self.last_update else None,
            "period": self.period.value,
            "pointCounts": dict(self.point_counts),
        }


def build_snapshot(state: StateSnapshot) -> DashboardSnapshot:
    ds = state.dataset
    return DashboardSnapshot(
        combined_points=combine(ds.bond_spread, ds.fx),
        commodities={"gold": list(ds.commodities.gold), "oil": list(ds.commodities.oil)},
        summaries=summarize(ds),
        loading=state.refresh.loading,
        error=state.refresh.error,
        last_update=state.refresh.last_update,
        period=state.refresh.period,
        point_counts={
            "spread": len(ds.bond_spread),
            "fx": len(ds.fx),
            "gold": len(ds.commodities.gold),
            "oil": len(ds.commodities.oil),
        },
    )

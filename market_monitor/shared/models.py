#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Domain Models for the Market Monitor
Defines the time series points delivered by the market-data API, the dataset
that groups them, and the refresh state owned by the scheduler.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class Period(str, Enum):
    """Historical window requested from the data source"""
    ONE_DAY = "1d"
    FIVE_DAYS = "5d"
    ONE_MONTH = "1mo"
    THREE_MONTHS = "3mo"
    SIX_MONTHS = "6mo"

    @classmethod
    def parse(cls, value) -> "Period":
        """
        Parse a period from its wire value

        Args:
            value: Period instance or string such as "5d"

        Returns:
            Matching Period

        Raises:
            ValueError: If the value is not a known period
        """
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"period must be one of {[m.value for m in cls]}, got {value!r}")


DEFAULT_PERIOD = Period.FIVE_DAYS


@dataclass(frozen=True)
class SpreadPoint:
    """US 10Y minus JP 10Y yield spread at a date"""
    date: str
    spread: float
    us10y: float
    jp10y: float


@dataclass(frozen=True)
class FxPoint:
    """USD/JPY rate at a date"""
    date: str
    rate: float


@dataclass(frozen=True)
class CommodityPoint:
    """Commodity price at a date; change is pre-computed upstream when present"""
    date: str
    price: float
    change: Optional[float] = None


@dataclass(frozen=True)
class Commodities:
    gold: Tuple[CommodityPoint, ...] = ()
    oil: Tuple[CommodityPoint, ...] = ()


@dataclass(frozen=True)
class Dataset:
    """
    Full set of series returned by one successful fetch

    Series keep the order delivered by the source and are never re-sorted.
    Instances are immutable so readers can hold a snapshot while a fetch runs.
    """
    bond_spread: Tuple[SpreadPoint, ...] = ()
    fx: Tuple[FxPoint, ...] = ()
    commodities: Commodities = field(default_factory=Commodities)

    def is_empty(self) -> bool:
        return not (self.bond_spread or self.fx or self.commodities.gold or self.commodities.oil)


@dataclass(frozen=True)
class CombinedPoint:
    """Spread and FX values aligned on a normalized date key"""
    date: str
    spread: float
    rate: float
    us10y: float
    jp10y: float


@dataclass
class RefreshState:
    """
    UI-facing refresh status

    loading stays True until the most recently issued request settles.
    """
    loading: bool = False
    error: Optional[str] = None
    last_update: Optional[datetime] = None
    period: Period = DEFAULT_PERIOD

    def __post_init__(self):
        """Normalize period given as a string"""
        self.period = Period.parse(self.period)

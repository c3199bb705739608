#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Market-data API client.
Issues one request per refresh cycle against the aggregating /api/all endpoint
and returns either a Dataset or a FetchError describing why it failed.
No retries here: the scheduler's next tick is the retry.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from .logging_setup import get_logger
from .models import (
    Commodities,
    CommodityPoint,
    Dataset,
    FxPoint,
    Period,
    SpreadPoint,
)

logger = get_logger(__name__)


class FetchErrorKind(str, Enum):
    TRANSPORT = "transport"
    API_REJECTED = "api_rejected"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class FetchError:
    """Reason a fetch produced no dataset"""
    kind: FetchErrorKind
    message: str
    detail: Optional[Any] = None


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one fetch: exactly one of dataset / error is set"""
    dataset: Optional[Dataset] = None
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, dataset: Dataset) -> "FetchResult":
        return cls(dataset=dataset)

    @classmethod
    def failure(cls, kind: FetchErrorKind, message: str, detail: Optional[Any] = None) -> "FetchResult":
        return cls(error=FetchError(kind=kind, message=message, detail=detail))


class PayloadError(ValueError):
    """Raised while parsing a payload that does not match the expected shape"""
    pass


def _number(item: Dict[str, Any], key: str, where: str) -> float:
    if key not in item:
        raise PayloadError(f"{where}: missing '{key}'")
    value = item[key]
    # bool is an int subclass but never a valid reading
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PayloadError(f"{where}: '{key}' must be numeric, got {type(value).__name__}")
    return float(value)


def _date(item: Dict[str, Any], where: str) -> str:
    value = item.get("date")
    if not isinstance(value, str) or not value.strip():
        raise PayloadError(f"{where}: 'date' must be a non-empty string")
    return value


def _rows(container: Dict[str, Any], key: str, where: str) -> List[Dict[str, Any]]:
    rows = container.get(key)
    if not isinstance(rows, list):
        raise PayloadError(f"{where}: '{key}' must be a list")
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            raise PayloadError(f"{where}.{key}[{i}] must be an object")
    return rows


def parse_dataset(data: Any) -> Dataset:
    """
    Map the 'data' object of an /api/all response to a Dataset

    Series order is kept exactly as delivered.

    Raises:
        PayloadError: If a series is missing or a point is malformed
    """
    if not isinstance(data, dict):
        raise PayloadError("'data' must be an object")

    spread = tuple(
        SpreadPoint(
            date=_date(row, f"bondSpread[{i}]"),
            spread=_number(row, "spread", f"bondSpread[{i}]"),
            us10y=_number(row, "us10y", f"bondSpread[{i}]"),
            jp10y=_number(row, "jp10y", f"bondSpread[{i}]"),
        )
        for i, row in enumerate(_rows(data, "bondSpread", "data"))
    )
    fx = tuple(
        FxPoint(date=_date(row, f"fx[{i}]"), rate=_number(row, "rate", f"fx[{i}]"))
        for i, row in enumerate(_rows(data, "fx", "data"))
    )

    commodities_raw = data.get("commodities")
    if not isinstance(commodities_raw, dict):
        raise PayloadError("data: 'commodities' must be an object")

    def _commodity(name: str):
        points = []
        for i, row in enumerate(_rows(commodities_raw, name, "commodities")):
            where = f"commodities.{name}[{i}]"
            change = row.get("change")
            points.append(CommodityPoint(
                date=_date(row, where),
                price=_number(row, "price", where),
                change=None if change is None else _number(row, "change", where),
            ))
        return tuple(points)

    return Dataset(
        bond_spread=spread,
        fx=fx,
        commodities=Commodities(gold=_commodity("gold"), oil=_commodity("oil")),
    )


class MarketDataClient:
    """Client for the market-data aggregation API"""

    ENDPOINT = "/api/all"

    def __init__(self, base_url: str, timeout: float = 15.0, session: Optional[requests.Session] = None):
        """
        Initialize market-data client

        Args:
            base_url: API base URL, e.g. http://localhost:8000
            timeout: Request timeout in seconds
            session: Optional pre-built session (tests inject fakes here)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': 'MarketMonitor/1.0',
        })

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.ENDPOINT}"

    def fetch_all(self, period: Period) -> FetchResult:
        """
        Fetch every series for a period in one request

        Args:
            period: Historical window to request

        Returns:
            FetchResult with a Dataset, or a FetchError of kind
            TRANSPORT (network failure, non-2xx), API_REJECTED (success flag
            false) or MALFORMED (unparsable payload)
        """
        period = Period.parse(period)
        logger.debug(f"GET {self.url} period={period.value}")

        try:
            response = self.session.get(self.url, params={"period": period.value}, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.warning(f"Request timed out after {self.timeout}s period={period.value}")
            return FetchResult.failure(FetchErrorKind.TRANSPORT, f"Request timeout after {self.timeout}s", "timeout")
        except requests.exceptions.RequestException as e:
            logger.warning(f"Request failed period={period.value}: {e}")
            return FetchResult.failure(FetchErrorKind.TRANSPORT, f"Connection error: {e}", str(e))

        if not 200 <= response.status_code < 300:
            logger.warning(f"HTTP {response.status_code} from {self.url} period={period.value}")
            return FetchResult.failure(
                FetchErrorKind.TRANSPORT,
                f"HTTP error! status: {response.status_code}",
                response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.warning(f"Response is not valid JSON: {e}")
            return FetchResult.failure(FetchErrorKind.MALFORMED, "Malformed response: body is not valid JSON", str(e))

        if not isinstance(payload, dict):
            return FetchResult.failure(FetchErrorKind.MALFORMED, "Malformed response: expected a JSON object")

        if not payload.get("success"):
            logger.warning(f"API rejected request period={period.value}")
            return FetchResult.failure(FetchErrorKind.API_REJECTED, "API returned failure status", payload.get("error"))

        try:
            dataset = parse_dataset(payload.get("data"))
        except PayloadError as e:
            logger.warning(f"Malformed payload: {e}")
            return FetchResult.failure(FetchErrorKind.MALFORMED, f"Malformed response: {e}", str(e))

        logger.debug(
            f"Fetched period={period.value}: spread={len(dataset.bond_spread)} fx={len(dataset.fx)} "
            f"gold={len(dataset.commodities.gold)} oil={len(dataset.commodities.oil)}"
        )
        return FetchResult.success(dataset)

    async def fetch_all_async(self, period: Period) -> FetchResult:
        """Run fetch_all in a worker thread so the event loop stays free while waiting on the network."""
        return await asyncio.to_thread(self.fetch_all, period)

    def close(self) -> None:
        self.session.close()

#!/usr/bin/env python3
"""
Unit tests for MarketDataClient

A fake session stands in for requests.Session so no network is used.
"""
import asyncio

import pytest
import requests

from market_monitor.shared.market_client import (
    FetchErrorKind,
    MarketDataClient,
    PayloadError,
    parse_dataset,
)
from market_monitor.shared.models import CommodityPoint, FxPoint, Period, SpreadPoint


def sample_payload():
    return {
        "success": True,
        "data": {
            "bondSpread": [
                {"date": "2024-01-01", "spread": 1.5, "us10y": 4.0, "jp10y": 2.5},
                {"date": "2024-01-02", "spread": 1.6, "us10y": 4.1, "jp10y": 2.5},
            ],
            "fx": [
                {"date": "2024-01-01 09:00", "rate": 148.2},
                {"date": "2024-01-02 09:00", "rate": 148},
            ],
            "commodities": {
                "gold": [{"date": "2024-01-02", "price": 2061.5, "change": 11.5}],
                "oil": [{"date": "2024-01-02", "price": 71.4}],
            },
        },
    }


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ""

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.headers = {}
        self.response = response
        self.exc = exc
        self.calls = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response

    def close(self):
        self.closed = True


def make_client(**session_kwargs):
    session = FakeSession(**session_kwargs)
    return MarketDataClient("http://api.test:8000/", timeout=5, session=session), session


class TestFetchAll:
    """Test fetch_all request building and error taxonomy"""

    def test_request_parameters(self):
        client, session = make_client(response=FakeResponse(payload=sample_payload()))

        client.fetch_all(Period.ONE_MONTH)

        assert session.calls == [{
            "url": "http://api.test:8000/api/all",
            "params": {"period": "1mo"},
            "timeout": 5,
        }]
        assert session.headers["Accept"] == "application/json"

    def test_success_returns_dataset_in_delivered_order(self):
        client, _ = make_client(response=FakeResponse(payload=sample_payload()))

        result = client.fetch_all("5d")

        assert result.ok
        ds = result.dataset
        assert ds.bond_spread[0] == SpreadPoint("2024-01-01", 1.5, 4.0, 2.5)
        assert [p.date for p in ds.fx] == ["2024-01-01 09:00", "2024-01-02 09:00"]
        assert ds.fx[1] == FxPoint("2024-01-02 09:00", 148.0)
        assert ds.commodities.gold == (CommodityPoint("2024-01-02", 2061.5, 11.5),)
        assert ds.commodities.oil[0].change is None

    @pytest.mark.parametrize("status", [404, 500, 503])
    def test_non_2xx_is_transport_error(self, status):
        client, _ = make_client(response=FakeResponse(status_code=status, text="boom"))

        result = client.fetch_all("5d")

        assert not result.ok
        assert result.dataset is None
        assert result.error.kind == FetchErrorKind.TRANSPORT
        assert result.error.detail == status
        assert result.error.message == f"HTTP error! status: {status}"

    def test_connection_error_is_transport_error(self):
        client, _ = make_client(exc=requests.exceptions.ConnectionError("refused"))

        result = client.fetch_all("5d")

        assert result.error.kind == FetchErrorKind.TRANSPORT
        assert "refused" in result.error.message

    def test_timeout_is_transport_error(self):
        client, _ = make_client(exc=requests.exceptions.Timeout())

        result = client.fetch_all("5d")

        assert result.error.kind == FetchErrorKind.TRANSPORT
        assert "timeout" in result.error.message.lower()

    def test_success_false_is_api_rejected(self):
        client, _ = make_client(response=FakeResponse(payload={"success": False}))

        result = client.fetch_all("5d")

        assert result.error.kind == FetchErrorKind.API_REJECTED
        assert result.error.message

    def test_missing_success_flag_is_api_rejected(self):
        payload = sample_payload()
        del payload["success"]
        client, _ = make_client(response=FakeResponse(payload=payload))

        assert client.fetch_all("5d").error.kind == FetchErrorKind.API_REJECTED

    @pytest.mark.parametrize("flag", [1, "true"])
    def test_truthy_success_flag_is_accepted(self, flag):
        payload = sample_payload()
        payload["success"] = flag
        client, _ = make_client(response=FakeResponse(payload=payload))

        result = client.fetch_all("5d")

        assert result.ok
        assert len(result.dataset.fx) == 2

    @pytest.mark.parametrize("flag", [0, "", None])
    def test_falsy_success_flag_is_api_rejected(self, flag):
        payload = sample_payload()
        payload["success"] = flag
        client, _ = make_client(response=FakeResponse(payload=payload))

        assert client.fetch_all("5d").error.kind == FetchErrorKind.API_REJECTED

    def test_invalid_json_is_malformed(self):
        client, _ = make_client(response=FakeResponse(payload=None, text="<html>"))

        result = client.fetch_all("5d")

        assert result.error.kind == FetchErrorKind.MALFORMED

    def test_non_object_body_is_malformed(self):
        client, _ = make_client(response=FakeResponse(payload=[1, 2, 3]))

        assert client.fetch_all("5d").error.kind == FetchErrorKind.MALFORMED

    def test_bad_series_is_malformed(self):
        payload = sample_payload()
        payload["data"]["fx"][0]["rate"] = "148.2"
        client, _ = make_client(response=FakeResponse(payload=payload))

        result = client.fetch_all("5d")

        assert result.error.kind == FetchErrorKind.MALFORMED
        assert "fx[0]" in result.error.message

    def test_invalid_period_raises(self):
        client, _ = make_client(response=FakeResponse(payload=sample_payload()))

        with pytest.raises(ValueError):
            client.fetch_all("2y")

    def test_fetch_all_async(self):
        client, session = make_client(response=FakeResponse(payload=sample_payload()))

        result = asyncio.run(client.fetch_all_async(Period.SIX_MONTHS))

        assert result.ok
        assert session.calls[0]["params"] == {"period": "6mo"}

    def test_close_closes_session(self):
        client, session = make_client(response=FakeResponse(payload=sample_payload()))
        client.close()
        assert session.closed


class TestParseDataset:
    """Test payload shape validation"""

    def test_missing_commodities(self):
        data = sample_payload()["data"]
        del data["commodities"]
        with pytest.raises(PayloadError, match="commodities"):
            parse_dataset(data)

    def test_missing_field(self):
        data = sample_payload()["data"]
        del data["bondSpread"][1]["jp10y"]
        with pytest.raises(PayloadError, match="jp10y"):
            parse_dataset(data)

    def test_boolean_is_not_numeric(self):
        data = sample_payload()["data"]
        data["commodities"]["gold"][0]["price"] = True
        with pytest.raises(PayloadError):
            parse_dataset(data)

    def test_empty_series_are_valid(self):
        ds = parse_dataset({"bondSpread": [], "fx": [], "commodities": {"gold": [], "oil": []}})
        assert ds.is_empty()

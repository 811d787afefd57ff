"""Tests for reverse geocoding: address formatting and retry behaviour."""

import httpx
import pytest
from httpx import AsyncClient

from app.config import Settings
from app.main import app
from app.services.geocoding import (
    ADDRESS_UNAVAILABLE,
    GEOCODING_FAILED,
    GeocodingError,
    ReverseGeocoder,
    format_address,
    get_geocoder,
)

NOMINATIM_PAYLOAD = {
    "display_name": "شارع قصر النيل، القاهرة، مصر",
    "address": {
        "road": "شارع قصر النيل",
        "house_number": "12",
        "suburb": "وسط البلد",
        "city": "القاهرة",
        "state": "محافظة القاهرة",
        "country": "مصر",
    },
}


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _geocoder(handler, sleep=None, retries=3) -> ReverseGeocoder:
    settings = Settings(geocoding_max_retries=retries, geocoding_backoff_seconds=1.0)
    return ReverseGeocoder(
        settings,
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=sleep or RecordingSleep(),
    )


def test_format_address_full():
    result = format_address(NOMINATIM_PAYLOAD)
    assert result.address == "شارع قصر النيل"
    assert result.city == "القاهرة"
    assert result.district == "وسط البلد"
    assert result.country == "مصر"
    assert result.full_address == "شارع قصر النيل، 12، وسط البلد، القاهرة، محافظة القاهرة، مصر"


def test_format_address_town_and_neighbourhood_fallbacks():
    result = format_address(
        {"address": {"town": "المنصورة", "neighbourhood": "توريل", "country": "مصر"}}
    )
    assert result.city == "المنصورة"
    assert result.district == "توريل"
    assert result.address == ""
    assert result.full_address == "توريل، المنصورة، مصر"


def test_format_address_without_address_block():
    assert format_address({}).to_dict() == {
        "address": None,
        "city": None,
        "country": None,
        "district": None,
        "full_address": None,
    }


def test_format_address_uses_display_name_when_parts_empty():
    result = format_address({"display_name": "Somewhere", "address": {"postcode": "11511"}})
    assert result.full_address == "Somewhere"
    assert format_address({"address": {"postcode": "1"}}).full_address == ADDRESS_UNAVAILABLE


@pytest.mark.asyncio
async def test_reverse_sends_arabic_request():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["params"] = dict(request.url.params)
        captured["agent"] = request.headers["user-agent"]
        return httpx.Response(200, json=NOMINATIM_PAYLOAD)

    result = await _geocoder(handler).reverse(30.04, 31.23)
    assert result.city == "القاهرة"
    assert captured["params"]["accept-language"] == "ar"
    assert captured["params"]["lon"] == "31.23"
    assert captured["agent"] == "BusinessDirectory/1.0"


@pytest.mark.asyncio
async def test_reverse_retries_then_succeeds():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json=NOMINATIM_PAYLOAD)

    sleep = RecordingSleep()
    result = await _geocoder(handler, sleep).reverse(30.0, 31.0)
    assert result.country == "مصر"
    assert len(calls) == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_reverse_exhausts_retries():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    sleep = RecordingSleep()
    with pytest.raises(GeocodingError, match=GEOCODING_FAILED):
        await _geocoder(handler, sleep).reverse(30.0, 31.0)
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_reverse_does_not_retry_client_errors():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(400)

    with pytest.raises(GeocodingError):
        await _geocoder(handler).reverse(30.0, 31.0)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_reverse_handles_non_json_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>busy</html>")

    with pytest.raises(GeocodingError, match=GEOCODING_FAILED):
        await _geocoder(handler).reverse(30.0, 31.0)


@pytest.mark.asyncio
async def test_endpoint_missing_params(client: AsyncClient):
    resp = await client.get("/api/v1/geocoding/reverse", params={"lat": "30"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing lat or lng parameters"}


@pytest.mark.asyncio
async def test_endpoint_success_and_failure(client: AsyncClient):
    app.dependency_overrides[get_geocoder] = lambda: _geocoder(
        lambda r: httpx.Response(200, json=NOMINATIM_PAYLOAD)
    )
    try:
        ok = await client.get("/api/v1/geocoding/reverse", params={"lat": 30, "lng": 31})
        assert ok.status_code == 200
        assert ok.json()["district"] == "وسط البلد"

        app.dependency_overrides[get_geocoder] = lambda: _geocoder(
            lambda r: httpx.Response(500), retries=1
        )
        failed = await client.get("/api/v1/geocoding/reverse", params={"lat": 30, "lng": 31})
        assert failed.status_code == 500
        body = failed.json()
        assert body["error"] == GEOCODING_FAILED
        assert body["city"] is None
    finally:
        app.dependency_overrides.pop(get_geocoder, None)

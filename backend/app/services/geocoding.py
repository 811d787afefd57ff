"""Reverse geocoding through Nominatim, with a small retry/backoff loop."""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable

import httpx

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

ADDRESS_SEPARATOR = "، "
ADDRESS_UNAVAILABLE = "عنوان غير متاح"
GEOCODING_FAILED = "فشل في جلب معلومات الموقع. يرجى المحاولة مرة أخرى."


class GeocodingError(Exception):
    """All attempts failed, or a non-retryable error occurred."""


@dataclass
class ReverseGeocodeResult:
    address: str | None = None
    city: str | None = None
    country: str | None = None
    district: str | None = None
    full_address: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


def format_address(data: dict[str, Any]) -> ReverseGeocodeResult:
    """Turn a Nominatim ``reverse`` payload into the flat result shape."""
    address = data.get("address") if data else None
    if not address:
        return ReverseGeocodeResult()

    district = address.get("suburb") or address.get("neighbourhood")
    city = address.get("city") or address.get("town") or address.get("village")

    parts = [
        address.get("road"),
        address.get("house_number"),
        district,
        city,
        address.get("state"),
        address.get("country"),
    ]
    full_address = (
        ADDRESS_SEPARATOR.join(p for p in parts if p)
        or data.get("display_name")
        or ADDRESS_UNAVAILABLE
    )

    return ReverseGeocodeResult(
        address=address.get("road") or address.get("house_number") or "",
        city=city or "",
        country=address.get("country") or "",
        district=district or "",
        full_address=full_address,
    )


class ReverseGeocoder:
    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client
        self._sleep = sleep

    async def _fetch(self, client: httpx.AsyncClient, lat: float, lng: float) -> httpx.Response:
        return await client.get(
            self.settings.nominatim_url,
            params={
                "format": "json",
                "lat": lat,
                "lon": lng,
                "zoom": 18,
                "addressdetails": 1,
                "accept-language": "ar",
            },
            headers={"User-Agent": self.settings.nominatim_user_agent},
            timeout=self.settings.geocoding_timeout,
        )

    async def reverse(self, lat: float, lng: float) -> ReverseGeocodeResult:
        if self._client is not None:
            return await self._reverse_with(self._client, lat, lng)
        async with httpx.AsyncClient() as client:
            return await self._reverse_with(client, lat, lng)

    async def _reverse_with(
        self, client: httpx.AsyncClient, lat: float, lng: float
    ) -> ReverseGeocodeResult:
        max_retries = self.settings.geocoding_max_retries
        backoff = self.settings.geocoding_backoff_seconds
        last_error: Exception | None = None

        for attempt in range(1, max_retries + 1):
            try:
                response = await self._fetch(client, lat, lng)
            except httpx.TransportError as exc:
                last_error = exc
                logger.warning("Geocoding attempt %d failed: %s", attempt, exc)
                if attempt < max_retries:
                    await self._sleep(backoff * attempt)
                    continue
                break

            if response.status_code >= 400:
                last_error = GeocodingError(
                    f"Nominatim API returned status {response.status_code}"
                )
                logger.warning("Geocoding attempt %d: %s", attempt, last_error)
                if _is_retryable_status(response.status_code) and attempt < max_retries:
                    await self._sleep(backoff * attempt)
                    continue
                break

            try:
                data = response.json()
            except ValueError as exc:
                last_error = exc
                logger.warning("Geocoding attempt %d returned invalid JSON: %s", attempt, exc)
                break
            return format_address(data)

        logger.error("All geocoding attempts failed for (%s, %s): %s", lat, lng, last_error)
        raise GeocodingError(GEOCODING_FAILED) from last_error


def get_geocoder() -> ReverseGeocoder:
    return ReverseGeocoder()

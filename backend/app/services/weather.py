from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..utils.timeouts import retry_async

logger = logging.getLogger(__name__)

CITY_COORDS: dict[str, tuple[float, float]] = {
    "toronto": (43.6532, -79.3832),
    "vancouver": (49.2827, -123.1207),
    "montreal": (45.5017, -73.5673),
    "london": (51.5074, -0.1278),
    "new york": (40.7128, -74.0060),
}

# WMO weather interpretation codes grouped into the image-safe condition words.
_WMO_CONDITIONS: tuple[tuple[range | tuple[int, ...], str], ...] = (
    ((0, 1), "sunny"),
    ((2, 3), "cloudy"),
    ((45, 48), "foggy"),
    (range(51, 68), "rain"),
    (range(80, 83), "rain"),
    (range(71, 78), "snow"),
    ((85, 86), "snow"),
    (range(95, 100), "storm"),
)


def condition_from_code(code: int | None) -> str | None:
    if code is None:
        return None
    for codes, condition in _WMO_CONDITIONS:
        if code in codes:
            return condition
    return str(code)


@dataclass(frozen=True)
class WeatherReading:
    temp_c: float | None
    humidity: float | None
    condition: str | None


class WeatherService:
    """Current-conditions lookup for the small set of known cities."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_url: str = "https://api.open-meteo.com/v1/forecast",
        enabled: bool = True,
        retries: int = 2,
        retry_delay: float = 0.5,
    ) -> None:
        self._client = client
        self._api_url = api_url
        self._enabled = enabled
        self._retries = max(1, retries)
        self._retry_delay = retry_delay

    @staticmethod
    def coordinates_for(city: str | None) -> tuple[float, float] | None:
        if not city:
            return None
        return CITY_COORDS.get(" ".join(city.split()).lower())

    async def current(self, city: str | None) -> WeatherReading | None:
        """Return a snapshot for ``city`` or ``None``; failures never raise."""

        if not self._enabled:
            return None
        coords = self.coordinates_for(city)
        if coords is None:
            return None
        latitude, longitude = coords
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current_weather": "true",
            "hourly": "relativehumidity_2m",
            "timezone": "UTC",
        }

        async def _request() -> dict[str, Any]:
            response = await self._client.get(self._api_url, params=params)
            response.raise_for_status()
            return response.json()

        try:
            payload = await retry_async(_request, attempts=self._retries, delay=self._retry_delay)
            return self._parse(payload)
        except (httpx.HTTPError, ValueError, TypeError) as exc:
            logger.warning("Weather lookup failed for %s: %s", city, exc)
            return None

    @staticmethod
    def _parse(payload: dict[str, Any]) -> WeatherReading | None:
        if not isinstance(payload, dict):
            return None
        current = payload.get("current_weather") or {}
        temperature = current.get("temperature")
        code = current.get("weathercode")
        humidity = None
        hourly = payload.get("hourly") or {}
        values = hourly.get("relativehumidity_2m")
        if isinstance(values, list) and values:
            humidity = values[-1]
        if temperature is None and code is None and humidity is None:
            return None
        return WeatherReading(
            temp_c=float(temperature) if temperature is not None else None,
            humidity=float(humidity) if humidity is not None else None,
            condition=condition_from_code(int(code)) if code is not None else None,
        )


__all__ = ["CITY_COORDS", "WeatherReading", "WeatherService", "condition_from_code"]

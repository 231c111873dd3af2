from __future__ import annotations

import httpx
import pytest

from backend.app.services.weather import WeatherService, condition_from_code

PAYLOAD = {
    "current_weather": {"temperature": 18.4, "weathercode": 61},
    "hourly": {"relativehumidity_2m": [70, 72, 75]},
}


@pytest.mark.parametrize(
    "code, expected",
    [(0, "sunny"), (3, "cloudy"), (45, "foggy"), (63, "rain"), (73, "snow"), (96, "storm"), (4, "4")],
)
def test_condition_from_code(code: int, expected: str) -> None:
    assert condition_from_code(code) == expected


def test_condition_from_missing_code() -> None:
    assert condition_from_code(None) is None


def test_coordinates_are_case_and_space_insensitive() -> None:
    assert WeatherService.coordinates_for("  New   York ") == (40.7128, -74.0060)
    assert WeatherService.coordinates_for("Atlantis") is None
    assert WeatherService.coordinates_for(None) is None


@pytest.mark.anyio
async def test_current_weather_for_known_city() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=PAYLOAD)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        service = WeatherService(client, api_url="https://weather.test/v1/forecast")
        reading = await service.current("Toronto")

    assert reading is not None
    assert reading.temp_c == pytest.approx(18.4)
    assert reading.humidity == 75.0
    assert reading.condition == "rain"
    assert seen[0].url.params["latitude"] == "43.6532"


@pytest.mark.anyio
async def test_unknown_city_and_disabled_skip_requests() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await WeatherService(client).current("Atlantis") is None
        assert await WeatherService(client, enabled=False).current("Toronto") is None


@pytest.mark.anyio
async def test_failures_return_none_after_retries() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503, json={"error": "unavailable"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        service = WeatherService(client, retries=2, retry_delay=0)
        assert await service.current("London") is None

    assert calls == 2


@pytest.mark.anyio
async def test_empty_payload_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await WeatherService(client).current("London") is None

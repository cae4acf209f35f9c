from __future__ import annotations

import httpx
import pytest

from wilderness_agents.geo import HttpGeolocationProvider
from wilderness_agents.models import Coordinates


def _provider(payload=None, status_code: int = 200) -> HttpGeolocationProvider:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpGeolocationProvider("https://ipapi.example/json", http_client=client)


@pytest.mark.parametrize(
    "payload",
    [
        {"lat": 47.8, "lng": -123.6},
        {"lat": 47.8, "lon": -123.6},
        {"latitude": "47.8", "longitude": "-123.6"},
    ],
)
@pytest.mark.asyncio
async def test_coordinate_field_spellings(payload) -> None:
    provider = _provider(payload)
    assert await provider.locate() == Coordinates(lat=47.8, lng=-123.6)


@pytest.mark.asyncio
async def test_payload_without_coordinates_returns_none() -> None:
    provider = _provider({"city": "Port Angeles"})
    assert await provider.locate() is None


@pytest.mark.asyncio
async def test_http_error_is_raised() -> None:
    provider = _provider({"error": "denied"}, status_code=403)
    with pytest.raises(httpx.HTTPStatusError):
        await provider.locate()

from __future__ import annotations

import json

import pytest

from conftest import WEATHER_PAYLOAD, StubCollaborator
from wilderness_agents.fetchers import fetch_weather
from wilderness_agents.fetchers.weather import OFFLINE_CONDITION


@pytest.mark.asyncio
async def test_weather_uses_search_model_with_grounding_and_json(collaborator, settings) -> None:
    snapshot = await fetch_weather(collaborator, "Olympic National Park", settings=settings)

    call = collaborator.calls[0]
    assert call.model == "search-model"
    assert call.options.enable_search_grounding is True
    assert call.options.request_json_output is True
    assert '"Olympic National Park"' in call.prompt

    assert snapshot.temp == 11.5
    assert snapshot.condition == "Light Rain"
    assert snapshot.wind_speed == 18
    assert snapshot.precip_prob == 70
    assert snapshot.confidence == 82


@pytest.mark.asyncio
async def test_location_name_always_comes_from_caller(collaborator, settings) -> None:
    snapshot = await fetch_weather(collaborator, "Mount Rainier", settings=settings)
    assert snapshot.location_name == "Mount Rainier"
    assert WEATHER_PAYLOAD["locationName"] != snapshot.location_name


@pytest.mark.asyncio
async def test_failure_yields_offline_snapshot(settings) -> None:
    stub = StubCollaborator(responses={"weather": RuntimeError("network down")})

    snapshot = await fetch_weather(stub, "Zion", settings=settings)

    assert snapshot.condition == OFFLINE_CONDITION
    assert snapshot.confidence == 0
    assert snapshot.temp == 0
    assert snapshot.location_name == "Zion"
    assert snapshot.last_updated


@pytest.mark.asyncio
async def test_prose_response_yields_offline_snapshot(settings) -> None:
    stub = StubCollaborator(responses={"weather": "It is sunny and warm today."})
    snapshot = await fetch_weather(stub, "Zion", settings=settings)
    assert snapshot.condition == OFFLINE_CONDITION
    assert snapshot.location_name == "Zion"


@pytest.mark.asyncio
async def test_partial_payload_keeps_offline_defaults(settings) -> None:
    stub = StubCollaborator(responses={"weather": json.dumps({"temp": 21, "condition": "Clear", "humidity": "dry"})})

    snapshot = await fetch_weather(stub, "Joshua Tree", settings=settings)

    assert snapshot.temp == 21
    assert snapshot.condition == "Clear"
    assert snapshot.humidity == 0
    assert snapshot.sunset == "--:--"


@pytest.mark.asyncio
async def test_same_response_is_idempotent_apart_from_timestamp(collaborator, settings) -> None:
    first = await fetch_weather(collaborator, "Olympic National Park", settings=settings)
    second = await fetch_weather(collaborator, "Olympic National Park", settings=settings)

    assert first.model_dump(exclude={"last_updated"}) == second.model_dump(exclude={"last_updated"})


@pytest.mark.asyncio
async def test_non_finite_numbers_keep_offline_defaults(settings) -> None:
    stub = StubCollaborator(responses={"weather": '{"temp": NaN, "confidence": Infinity, "humidity": 55}'})

    snapshot = await fetch_weather(stub, "Death Valley", settings=settings)

    assert snapshot.temp == 0
    assert snapshot.confidence == 0
    assert snapshot.humidity == 55
    json.dumps(snapshot.model_dump(mode="json"), allow_nan=False)

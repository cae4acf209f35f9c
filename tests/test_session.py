from __future__ import annotations

import asyncio

import pytest

from conftest import StubCollaborator, full_responses
from wilderness_agents.geo import StaticGeolocationProvider
from wilderness_agents.models import Coordinates
from wilderness_agents.orchestrator import RefreshOrchestrator
from wilderness_agents.session import DashboardSession


class _FailingGeolocator:
    def __init__(self) -> None:
        self.closed = False

    async def locate(self):
        raise PermissionError("user denied location")

    async def close(self) -> None:
        self.closed = True


def _session(collaborator, state, settings, geolocator=None) -> DashboardSession:
    orchestrator = RefreshOrchestrator(collaborator, state, settings=settings)
    return DashboardSession(orchestrator, geolocator=geolocator)


@pytest.mark.asyncio
async def test_mount_runs_exactly_one_refresh(collaborator, state, settings) -> None:
    session = _session(collaborator, state, settings)

    await session.mount()
    await session.mount()
    await session.wait_idle()

    assert state.mounted is True
    assert collaborator.kinds().count("weather") == 1
    assert state.weather.location_name == "Olympic National Park"
    await session.unmount()
    assert state.mounted is False


@pytest.mark.asyncio
async def test_geolocation_sets_coordinates(collaborator, state, settings) -> None:
    locator = StaticGeolocationProvider(Coordinates(lat=47.8, lng=-123.6))
    session = _session(collaborator, state, settings, geolocator=locator)

    await session.mount()
    await session.wait_idle()
    await asyncio.sleep(0)

    assert state.coordinates == Coordinates(lat=47.8, lng=-123.6)
    await session.unmount()


@pytest.mark.asyncio
async def test_geolocation_failure_is_ignored(collaborator, state, settings) -> None:
    locator = _FailingGeolocator()
    session = _session(collaborator, state, settings, geolocator=locator)

    await session.mount()
    await session.wait_idle()
    await asyncio.sleep(0)

    assert state.coordinates is None
    assert state.guidance is not None
    await session.unmount()
    assert locator.closed is True


@pytest.mark.asyncio
async def test_request_refresh_drops_while_in_flight(state, settings) -> None:
    gate = asyncio.Event()
    stub = StubCollaborator(responses=full_responses(), gates={"weather": gate})
    session = _session(stub, state, settings)

    assert session.request_refresh("Mount Rainier") is True
    assert session.request_refresh("Mount Hood") is False
    assert state.location_input == "Mount Hood"

    gate.set()
    await session.wait_idle()
    assert state.weather.location_name == "Mount Rainier"
    assert stub.kinds().count("weather") == 1


@pytest.mark.asyncio
async def test_request_refresh_rejects_blank_location(collaborator, state, settings) -> None:
    session = _session(collaborator, state, settings)

    with pytest.raises(ValueError):
        session.request_refresh("  ")
    assert collaborator.calls == []


@pytest.mark.asyncio
async def test_refresh_uses_current_input_by_default(collaborator, state, settings) -> None:
    session = _session(collaborator, state, settings)
    state.set_location_input("Yosemite Valley")

    assert await session.refresh() is True
    assert state.weather.location_name == "Yosemite Valley"


@pytest.mark.asyncio
async def test_unmount_cancels_in_flight_refresh(state, settings) -> None:
    gate = asyncio.Event()
    stub = StubCollaborator(responses=full_responses(), gates={"weather": gate})
    session = _session(stub, state, settings)

    await session.mount()
    for _ in range(10):
        await asyncio.sleep(0)
    assert state.cycle.busy is True

    await session.unmount()

    assert state.cycle.busy is False
    assert state.weather is None

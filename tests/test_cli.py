from __future__ import annotations

import json

import pytest

from conftest import StubCollaborator, full_responses
from wilderness_agents import cli
from wilderness_agents.config import AppConfig


@pytest.fixture
def stub(monkeypatch) -> StubCollaborator:
    collaborator = StubCollaborator(responses=full_responses())

    async def aclose() -> None:
        return None

    collaborator.aclose = aclose  # type: ignore[attr-defined]
    monkeypatch.setattr(cli, "get_collaborator", lambda cfg: collaborator)
    monkeypatch.setattr(cli, "build_geolocation_provider", lambda cfg: None)
    for name in ("DEFAULT_LOCATION", "DEFAULT_THEME", "LOG_JSON"):
        monkeypatch.delenv(name, raising=False)
    return collaborator


def test_parser_reads_profile_flags() -> None:
    args = cli.build_parser().parse_args(["Zion", "--fire", "--group-size", "3", "--pack-weight", "8.5"])
    assert args.location == "Zion"
    assert args.fire is True
    assert args.group_size == 3
    assert args.pack_weight == 8.5


@pytest.mark.asyncio
async def test_run_returns_snapshot(stub) -> None:
    args = cli.build_parser().parse_args(["Zion", "--fire", "--group-size", "5"])

    snapshot = await cli.run(args, AppConfig.load_from_env())

    assert snapshot["weather"]["location_name"] == "Zion"
    assert snapshot["fire_mode"] is True
    assert snapshot["fire_alerts"]
    assert snapshot["profile"]["group_size"] == 5
    guidance_prompt = next(call.prompt for call in stub.calls if call.kind == "guidance")
    assert "Group of 5" in guidance_prompt


def test_main_prints_json(stub, capsys) -> None:
    cli.main(["Olympic National Park"])

    out = capsys.readouterr().out
    payload = json.loads(out[out.index("{\n"):])
    assert payload["location_input"] == "Olympic National Park"
    assert payload["busy"] is False


def test_main_rejects_blank_location(stub) -> None:
    with pytest.raises(SystemExit):
        cli.main(["   "])


@pytest.mark.parametrize("flags", [["--experience", "150"], ["--start-time", "25:00"]])
def test_main_rejects_out_of_range_profile(stub, flags) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["Zion", *flags])

    assert "invalid profile" in str(excinfo.value.code)
    assert stub.calls == []

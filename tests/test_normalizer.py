from __future__ import annotations

import pytest

from wilderness_agents.models import FireDetails, TerrainProfile
from wilderness_agents.normalizer import normalize, overlay, strip_code_fences

FALLBACK = {"status": "CAUTION"}


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "   ",
        "Sorry, I cannot help with that.",
        "{not json at all",
        "42",
        '"just a string"',
        "```json\n```",
        12345,
    ],
)
def test_unusable_text_returns_fallback_identity(raw) -> None:
    assert normalize(raw, FALLBACK) is FALLBACK


def test_plain_object_is_parsed() -> None:
    assert normalize('{"a": 1, "b": [1, 2]}', FALLBACK) == {"a": 1, "b": [1, 2]}


def test_fenced_object_is_parsed() -> None:
    raw = '```json\n{"status": "GO", "safetyIndex": 80}\n```'
    assert normalize(raw, FALLBACK) == {"status": "GO", "safetyIndex": 80}


def test_uppercase_fence_without_language_tag() -> None:
    raw = '```JSON\n{"x": 1}\n```'
    assert normalize(raw, FALLBACK) == {"x": 1}
    assert normalize('```\n[1, 2]\n```', FALLBACK) == [1, 2]


def test_array_is_returned_as_is() -> None:
    assert normalize('[{"a": 1}]', FALLBACK) == [{"a": 1}]


def test_leading_prose_is_not_salvaged() -> None:
    raw = 'Here is the data: {"a": 1}'
    assert normalize(raw, FALLBACK) is FALLBACK


def test_strip_code_fences_trims_whitespace() -> None:
    assert strip_code_fences("  ```json\n{}\n```  ") == "{}"


def test_overlay_keeps_fallback_for_missing_and_mistyped_fields() -> None:
    fallback = TerrainProfile(type="Unknown", exposure="Moderate", hazards=[], ranger_note="Maintain visual scout.")
    parsed = {"type": "Alpine ridge", "exposure": 7, "hazards": "rockfall"}

    result = overlay(fallback, parsed)

    assert result.type == "Alpine ridge"
    assert result.exposure == "Moderate"
    assert result.hazards == []
    assert result.ranger_note == "Maintain visual scout."


def test_overlay_accepts_alias_and_field_name() -> None:
    by_alias = overlay(FireDetails(), {"dangerRating": "Very High"})
    by_name = overlay(FireDetails(), {"danger_rating": "Low"})

    assert by_alias.danger_rating == "Very High"
    assert by_name.danger_rating == "Low"


def test_overlay_ignores_non_mapping_and_applies_overrides() -> None:
    fallback = FireDetails(wind_effect="calm")

    assert overlay(fallback, ["not", "a", "mapping"]) == fallback
    forced = overlay(fallback, {"windEffect": "gusty"}, wind_effect="forced")
    assert forced.wind_effect == "forced"

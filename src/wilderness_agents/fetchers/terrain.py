# Copyright 2025 msq
from __future__ import annotations

import structlog

from wilderness_agents.fetchers.base import FetcherSettings, invoke
from wilderness_agents.fetchers.prompts import build_terrain_prompt
from wilderness_agents.llm.client import GenerationOptions, LLMCollaborator
from wilderness_agents.models import TerrainProfile
from wilderness_agents.normalizer import normalize, overlay

logger = structlog.get_logger(__name__)

TERRAIN_OPTIONS = GenerationOptions(request_json_output=True)


def fallback_terrain() -> TerrainProfile:
    return TerrainProfile(
        type="Unknown",
        exposure="Moderate",
        hazards=[],
        ranger_note="Maintain visual scout.",
    )


async def fetch_terrain(
    collaborator: LLMCollaborator,
    location_name: str,
    *,
    settings: FetcherSettings,
) -> TerrainProfile:
    fallback = fallback_terrain()
    try:
        text = await invoke(
            collaborator,
            fetcher="terrain",
            model=settings.fast_model,
            prompt=build_terrain_prompt(location_name),
            options=TERRAIN_OPTIONS,
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("terrain_fetch_failed", location=location_name, error=str(exc))
        return fallback

    return overlay(fallback, normalize(text, fallback))

# Copyright 2025 msq
from __future__ import annotations

from typing import Optional

import structlog

from wilderness_agents.fetchers.base import FetcherSettings, invoke
from wilderness_agents.fetchers.prompts import build_guidance_prompt
from wilderness_agents.llm.client import GenerationOptions, LLMCollaborator
from wilderness_agents.models import (
    Coordinates,
    GuidanceStatus,
    GuidanceVerdict,
    UserCapability,
    WeatherSnapshot,
)
from wilderness_agents.normalizer import normalize, overlay

logger = structlog.get_logger(__name__)

FALLBACK_PACKING_HINTS = ["Review local signs", "Stay alert"]


def fallback_guidance() -> GuidanceVerdict:
    return GuidanceVerdict(
        status=GuidanceStatus.CAUTION,
        reasoning="AI Logic unreachable. Use local terrain observation.",
        packing_hints=list(FALLBACK_PACKING_HINTS),
        ai_summary="Intelligence engine connection failed.",
        safety_index=50,
    )


async def fetch_guidance(
    collaborator: LLMCollaborator,
    weather: WeatherSnapshot,
    user: UserCapability,
    *,
    coordinates: Optional[Coordinates] = None,
    fire_mode: bool = False,
    settings: FetcherSettings,
) -> GuidanceVerdict:
    """高阶模型给出 GO/CAUTION/MODIFY/NOGO 结论。

    packingHints 缺失或不是字符串数组时沿用保守提示。
    """
    fallback = fallback_guidance()
    options = GenerationOptions(
        request_json_output=True,
        reasoning_budget=settings.guidance_reasoning_budget,
    )
    try:
        text = await invoke(
            collaborator,
            fetcher="guidance",
            model=settings.reasoning_model,
            prompt=build_guidance_prompt(weather, user, coordinates, fire_mode),
            options=options,
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("guidance_fetch_failed", location=weather.location_name, error=str(exc))
        return fallback

    return overlay(fallback, normalize(text, fallback))
